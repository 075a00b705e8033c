from __future__ import annotations

import argparse
import contextlib
import io
import sys
from typing import Any

import click
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .. import __version__
from ..application_commands import (
    cmd_delete_application,
    cmd_get_application,
    cmd_get_applications,
    cmd_import_application,
)
from ..auth import cmd_login
from ..cli_shared import GlobalOpts, OpError, UsageError, _eprint
from ..config_commands import cmd_config_new_context, cmd_config_use_context, cmd_config_view
from ..deployment_commands import (
    cmd_create_deployment,
    cmd_deploy_application,
    cmd_get_deployment,
    cmd_get_logs,
    cmd_patch_deployment,
    cmd_undeploy_application,
)
from ..environment_commands import (
    cmd_create_environment,
    cmd_delete_environment,
    cmd_get_environment,
    cmd_sync_environment,
    cmd_update_environment,
)
from ..models import DEFAULT_RUNTIME
from ..output import FORMATS
from ..proxy_commands import cmd_create_bundle, cmd_deploy_proxy

PROG_NAME = "shipyardctl"

_FORMAT_HELP = f"Output format ({', '.join(FORMATS)})"
_ORG_HELP = "Apigee organization name (env: APIGEE_ORG)"
_ENV_HELP = "Apigee environment name (env: APIGEE_ENV)"


class _InsertionOrderTyperGroup(typer.core.TyperGroup):
    def list_commands(self, ctx: click.Context) -> list[str]:
        names = list(self.commands)
        lead = [n for n in ("login",) if n in names]
        return lead + [n for n in names if n not in set(lead)]


def _bootstrap_env() -> None:
    # python-dotenv defaults: discover .env without overriding exported values.
    load_dotenv()


_ERROR_CONSOLE = Console(stderr=True)


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}", highlight=False)


def _root_help_text(*, root_app: typer.Typer, prog_name: str) -> str:
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        try:
            root_app(args=["--help"], prog_name=prog_name, standalone_mode=False)
        except (typer.Exit, click.ClickException):
            pass
    return str(buf.getvalue() or "").strip()


def _render_usage_error_with_help(
    *,
    message: str,
    ctx: click.Context | None = None,
    fallback_help: str = "",
) -> None:
    _rich_error(message)
    help_text = ""
    if isinstance(ctx, click.Context):
        help_text = str(ctx.get_help() or "").strip()
    if not help_text:
        help_text = str(fallback_help or "").strip()
    if help_text:
        _eprint("")
        _eprint(help_text)


def _namespace(**kwargs: Any) -> argparse.Namespace:
    return argparse.Namespace(**kwargs)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{PROG_NAME} {__version__}")
        raise typer.Exit(code=0)


app = typer.Typer(
    name=PROG_NAME,
    help="Manage Shipyard applications, Enrober deployments and Edge proxies.",
    no_args_is_help=True,
    add_completion=False,
    cls=_InsertionOrderTyperGroup,
)

get_app = typer.Typer(help="Retrieve applications, deployments, environments and logs", no_args_is_help=True)
import_app = typer.Typer(help="Import application source into Shipyard", no_args_is_help=True)
delete_app = typer.Typer(help="Delete applications and environments", no_args_is_help=True)
deploy_app = typer.Typer(help="Deploy applications and API proxies", no_args_is_help=True)
undeploy_app = typer.Typer(help="Undeploy running applications", no_args_is_help=True)
create_app = typer.Typer(help="Create proxy bundles, deployments and environments", no_args_is_help=True)
update_app = typer.Typer(help="Update environments", no_args_is_help=True)
patch_app = typer.Typer(help="Apply raw JSON patches to deployments", no_args_is_help=True)
sync_app = typer.Typer(help="Synchronize environments with Edge", no_args_is_help=True)
config_app = typer.Typer(help="Manage config contexts (targets and stored credentials)", no_args_is_help=True)

app.add_typer(get_app, name="get")
app.add_typer(import_app, name="import")
app.add_typer(delete_app, name="delete")
app.add_typer(deploy_app, name="deploy")
app.add_typer(undeploy_app, name="undeploy")
app.add_typer(create_app, name="create")
app.add_typer(update_app, name="update")
app.add_typer(patch_app, name="patch")
app.add_typer(sync_app, name="sync")
app.add_typer(config_app, name="config")


@app.callback()
def app_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Print request and response details to stderr (bearer token redacted)",
    ),
    config_path: str | None = typer.Option(
        None,
        "--config",
        help="Path to the config file (default: ~/.shipyardctl/config.json; env override: SHIPYARDCTL_CONFIG)",
    ),
    quiet: bool = typer.Option(False, "--quiet", help="Reduce stderr logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    ctx.obj = {"g": GlobalOpts(config_path=config_path or "", verbose=verbose, quiet=quiet)}


def _ctx_global(ctx: typer.Context) -> GlobalOpts:
    root = ctx.find_root()
    for obj in (ctx.obj, root.obj):
        if isinstance(obj, dict) and isinstance(obj.get("g"), GlobalOpts):
            return obj["g"]
    return GlobalOpts(config_path="")


def _invoke(ctx: typer.Context, func: Any, **kwargs: Any) -> None:
    g = _ctx_global(ctx)
    args = _namespace(**kwargs)
    try:
        code = int(func(args, g))
    except UsageError as e:
        _render_usage_error_with_help(message=str(e), ctx=ctx)
        raise typer.Exit(code=2)
    except OpError as e:
        _rich_error(str(e))
        raise typer.Exit(code=1)

    if code:
        raise typer.Exit(code=code)


@app.command("login", help="Log in with Apigee SSO and store the token in the current context.")
def login(
    ctx: typer.Context,
    username: str | None = typer.Option(None, "--username", "-u", help="Apigee username (env: APIGEE_USERNAME)"),
    password: str | None = typer.Option(None, "--password", "-p", help="Apigee password (env: APIGEE_PASSWORD)"),
    mfa: str | None = typer.Option(None, "--mfa", help="MFA token (prompted on a terminal when omitted)"),
) -> None:
    _invoke(ctx, cmd_login, username=username, password=password, mfa=mfa)


@get_app.command("applications", help="List the applications imported into an organization.")
def get_applications(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_get_applications, org=org, format=fmt)


@get_app.command("application", help="Show the revisions of an application, or one revision with name:rev.")
def get_application(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Application name, optionally name:revision"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_get_application, org=org, name=name, format=fmt)


@get_app.command("deployment", help="Show one deployment, or every deployment in the environment with --all.")
def get_deployment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Deployment name"),
    all_: bool = typer.Option(False, "--all", "-a", help="List all deployments in the environment"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_get_deployment, org=org, env=env, name=name, all=all_, format=fmt)


@get_app.command("environment", help="Show an environment and its host names.")
def get_environment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_get_environment, org=org, env=env, format=fmt)


@get_app.command("logs", help="Print the logs of a deployment.")
def get_logs(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Deployment name"),
    previous: bool = typer.Option(False, "--previous", "-p", help="Logs of the previous container instance"),
) -> None:
    _invoke(ctx, cmd_get_logs, org=org, env=env, name=name, previous=previous)


@import_app.command("application", help="Archive a Node.js project and import it as a new application revision.")
def import_application(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Application name"),
    directory: str | None = typer.Option(None, "--directory", "-d", help="Project directory containing package.json"),
    runtime: str = typer.Option(DEFAULT_RUNTIME, "--runtime", "-u", help="Build runtime, e.g. node:4"),
    env_vars: list[str] = typer.Option([], "--env-var", help="Build-time KEY=VAL (repeatable)"),
    stream: bool = typer.Option(False, "--stream", help="Echo the build output as it arrives"),
) -> None:
    _invoke(
        ctx,
        cmd_import_application,
        org=org,
        name=name,
        directory=directory,
        runtime=runtime,
        env_vars=env_vars,
        stream=stream,
    )


@delete_app.command("application", help="Delete an application (all revisions, or one with name:rev).")
def delete_application(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help="Environment to undeploy from first (with --force)"),
    name: str | None = typer.Option(None, "--name", "-n", help="Application name, optionally name:revision"),
    force: bool = typer.Option(False, "--force", help="Skip the prompt and undeploy the application first"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_delete_application, org=org, env=env, name=name, force=force, format=fmt)


@delete_app.command("environment", help="Delete an environment.")
def delete_environment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_delete_environment, org=org, env=env, format=fmt)


@deploy_app.command("application", help="Deploy an application revision (name:rev), or update it with --force.")
def deploy_application(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Application name and revision, name:rev"),
    env_vars: list[str] = typer.Option([], "--env-var", help="Runtime KEY=VAL (repeatable)"),
    edge_configs: list[str] = typer.Option(
        [],
        "--edge-config",
        help="Runtime KEY=configName:configKey read from an Edge KVM (repeatable)",
    ),
    replicas: int | None = typer.Option(None, "--replicas", help="Number of replicas (default 1)"),
    force: bool = typer.Option(False, "--force", help="Patch an active deployment instead of creating one"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(
        ctx,
        cmd_deploy_application,
        org=org,
        env=env,
        name=name,
        env_vars=env_vars,
        edge_configs=edge_configs,
        replicas=replicas,
        force=force,
        format=fmt,
    )


@deploy_app.command("proxy", help="Import an Edge API proxy bundle and deploy the new revision.")
def deploy_proxy(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Proxy name"),
    base_path: str | None = typer.Option(None, "--base-path", "-b", help="Proxy base path (default /<name>)"),
    target_path: str | None = typer.Option(None, "--target-path", help="Target path (default /<name>)"),
    zip_path: str | None = typer.Option(None, "--zip-path", "-z", help="Existing bundle zip to upload"),
) -> None:
    _invoke(
        ctx,
        cmd_deploy_proxy,
        org=org,
        env=env,
        name=name,
        base_path=base_path,
        target_path=target_path,
        zip_path=zip_path,
    )


@undeploy_app.command("application", help="Undeploy an application from an environment.")
def undeploy_application(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Deployment name"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_undeploy_application, org=org, env=env, name=name, format=fmt)


@create_app.command("bundle", help="Write an Edge API proxy bundle zip for an application.")
def create_bundle(
    ctx: typer.Context,
    name: str | None = typer.Option(None, "--name", "-n", help="Proxy name"),
    save: str | None = typer.Option(None, "--save", "-s", help="Directory to save the zip in (default: cwd)"),
    base_path: str | None = typer.Option(None, "--base-path", "-b", help="Proxy base path (default /<name>)"),
    target_path: str | None = typer.Option(None, "--target-path", help="Target path (default /<name>)"),
) -> None:
    _invoke(ctx, cmd_create_bundle, name=name, save=save, base_path=base_path, target_path=target_path)


@create_app.command("deployment", help="Create a deployment from a pod template spec URL.")
def create_deployment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Deployment name"),
    public_hosts: str | None = typer.Option(None, "--public-hosts", help="Public host names"),
    private_hosts: str | None = typer.Option(None, "--private-hosts", help="Private host names"),
    replicas: int | None = typer.Option(None, "--replicas", help="Number of replicas (default 1)"),
    pts_url: str | None = typer.Option(None, "--pts-url", help="URL of the pod template spec"),
    env_vars: list[str] = typer.Option([], "--env-var", help="Runtime KEY=VAL (repeatable)"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(
        ctx,
        cmd_create_deployment,
        org=org,
        env=env,
        name=name,
        public_hosts=public_hosts,
        private_hosts=private_hosts,
        replicas=replicas,
        pts_url=pts_url,
        env_vars=env_vars,
        format=fmt,
    )


@create_app.command("environment", help="Create an environment with its accepted host names.")
def create_environment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    host_names: list[str] = typer.Option([], "--host-name", help="Accepted host name (repeatable or comma separated)"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_create_environment, org=org, env=env, host_names=host_names, format=fmt)


@update_app.command("environment", help="Replace the host names of an environment.")
def update_environment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    host_names: list[str] = typer.Option([], "--host-name", help="Accepted host name (repeatable or comma separated)"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_update_environment, org=org, env=env, host_names=host_names, format=fmt)


@patch_app.command("deployment", help="Send a raw JSON patch document to a deployment.")
def patch_deployment(
    ctx: typer.Context,
    data: str = typer.Argument(..., help='JSON object, e.g. \'{"replicas": 3}\''),
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Deployment name"),
    fmt: str | None = typer.Option(None, "--format", "-f", help=_FORMAT_HELP),
) -> None:
    _invoke(ctx, cmd_patch_deployment, org=org, env=env, name=name, data=data, format=fmt)


@sync_app.command("environment", help="Ask Enrober to resynchronize an environment with Edge.")
def sync_environment(
    ctx: typer.Context,
    org: str | None = typer.Option(None, "--org", "-o", help=_ORG_HELP),
    env: str | None = typer.Option(None, "--env", "-e", help=_ENV_HELP),
) -> None:
    _invoke(ctx, cmd_sync_environment, org=org, env=env)


@config_app.command("view", help="Print the config file with tokens redacted.")
def config_view(ctx: typer.Context) -> None:
    _invoke(ctx, cmd_config_view)


@config_app.command("use-context", help="Switch the current context.")
def config_use_context(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Context name"),
) -> None:
    _invoke(ctx, cmd_config_use_context, name=name)


@config_app.command("new-context", help="Add a context with its own API targets.")
def config_new_context(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Context name"),
    cluster_target: str | None = typer.Option(None, "--cluster-target", help="Shipyard cluster URL"),
    sso_target: str | None = typer.Option(None, "--sso-target", help="Apigee SSO URL"),
    mgmt_api_target: str | None = typer.Option(None, "--mgmt-api-target", help="Edge management API URL"),
    no_activate: bool = typer.Option(False, "--no-activate", help="Keep the current context selected"),
) -> None:
    _invoke(
        ctx,
        cmd_config_new_context,
        name=name,
        cluster_target=cluster_target,
        sso_target=sso_target,
        mgmt_api_target=mgmt_api_target,
        no_activate=no_activate,
    )


def _run_cli(*, root_app: typer.Typer, prog_name: str, argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    _bootstrap_env()
    try:
        result = root_app(args=argv, prog_name=prog_name, standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.exceptions.Abort:
        _rich_error("Aborted.")
        return 1
    except click.ClickException as e:
        if isinstance(e, click.UsageError):
            _render_usage_error_with_help(message=e.format_message(), ctx=getattr(e, "ctx", None))
            return int(e.exit_code)
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _render_usage_error_with_help(
            message=str(e),
            fallback_help=_root_help_text(root_app=root_app, prog_name=prog_name),
        )
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    return _run_cli(root_app=app, prog_name=PROG_NAME, argv=argv)


if __name__ == "__main__":
    raise SystemExit(main())
