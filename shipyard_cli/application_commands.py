from __future__ import annotations

import argparse
import re
import sys
import tempfile
from pathlib import Path

import typer

from . import auth, bundle, config, deployment_commands, output, transport
from .cli_shared import (
    GlobalOpts,
    OpError,
    UsageError,
    _eprint,
    _require_env,
    _require_name,
    _require_org,
    _shipyard_env,
)
from .models import Application, split_name_revision, validate_runtime

BUILD_API_PATH = "/beeswax/images/api/v1"

BUILD_STARTED_MESSAGE = "Beginning application import. This could take a minute."
BUILD_COMPLETE_RE = re.compile(
    r"Organization: [a-z0-9-]+ \| Application: [a-z0-9-]+ \| Revision: [a-z0-9]+"
)
DELETE_CONFLICT_HINT = (
    "Please use the --force flag or use the undeploy command first "
    "if you wish to undeploy and delete the application"
)


def apps_url(g: GlobalOpts, org: str, *segments: str) -> str:
    targets = config.resolve_targets(g)
    return transport.build_url(targets.cluster, BUILD_API_PATH, "organizations", org, "apps", *segments)


def _verbose_env(g: GlobalOpts, org: str, env: str | None = None) -> dict[str, str]:
    return {
        "CLUSTER_TARGET": config.resolve_targets(g).cluster,
        "APIGEE_ORG": org,
        "APIGEE_ENV": env or "",
    }


class BuildStream:
    """Collects build output lines, echoing them as they arrive when asked to."""

    def __init__(self, *, echo: bool) -> None:
        self.echo = echo
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        if not self.lines:
            sys.stdout.write(f"\n{BUILD_STARTED_MESSAGE}\n")
        self.lines.append(line)
        if self.echo:
            sys.stdout.write(line + "\n")
            sys.stdout.flush()

    def last_line(self) -> str:
        for line in reversed(self.lines):
            if line.strip():
                return line
        return ""

    def check(self) -> str:
        last = self.last_line()
        if BUILD_COMPLETE_RE.search(last):
            return last
        if self.echo:
            raise OpError("There was a problem during the build. Refer to the build stream")
        captured = "\n".join(self.lines)
        raise OpError(
            "There was a problem during the build. Build output:\n"
            f"{captured}\nPlease refer to the above build output"
        )


def cmd_get_applications(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    fmt = output.validate_format(args.format)
    url = apps_url(g, org)
    resp = auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g, method="GET", url=url, token=token, verbose_env=_verbose_env(g, org)
        ),
    )
    return output.output_based_on_status(
        resp,
        success="\nAvailable applications:\n",
        failure="\nThere was an error retrieving your imported applications",
        fmt=fmt,
        default_fmt="table",
        layout=output.LAYOUT_APPS,
    )


def cmd_get_application(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    raw_name = _require_name(args.name)
    fmt = output.validate_format(args.format)
    name, revision = split_name_revision(raw_name)
    if revision is None:
        url = apps_url(g, org, name)
        layout = output.LAYOUT_APP
    else:
        url = apps_url(g, org, name, "version", str(revision))
        layout = output.LAYOUT_APP_REVISION
    resp = auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g, method="GET", url=url, token=token, verbose_env=_verbose_env(g, org)
        ),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nAvailable info for {raw_name} in {org}:\n",
        failure=f"\nThere was an error retrieving {raw_name} from {org}",
        fmt=fmt,
        default_fmt="table",
        layout=layout,
    )


def cmd_import_application(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    name = _require_name(args.name)
    directory = (args.directory or "").strip()
    if not directory:
        raise UsageError("missing required flag '--directory' (pass --directory)")
    app = Application(
        name=name,
        runtime=validate_runtime(args.runtime),
        env_vars=tuple(args.env_vars or ()),
    )

    with tempfile.TemporaryDirectory(prefix=f"{name}-") as tmp:
        zip_path = bundle.archive_application(directory, name=name, work_dir=Path(tmp))
        zip_bytes = zip_path.read_bytes()
        zip_name = zip_path.name

    body, content_type = transport.encode_multipart(
        fields=app.form_fields(),
        files=[("file", zip_name, zip_bytes)],
    )
    url = apps_url(g, org)
    echo = bool(args.stream or g.verbose)
    streams: list[BuildStream] = []

    def send(token: str) -> transport.ApiResponse:
        stream = BuildStream(echo=echo)
        streams.append(stream)
        return transport.api_request(
            g,
            method="POST",
            url=url,
            token=token,
            body=body,
            content_type=content_type,
            line_sink=stream,
            verbose_env=_verbose_env(g, org),
        )

    resp = auth.run_with_auth_retry(g, send)
    if not resp.ok:
        text = resp.text().rstrip("\n")
        if text:
            sys.stdout.write(text + "\n")
        return 1
    last = streams[-1].check()
    if not echo:
        sys.stdout.write(last + "\n")
    return 0


def delete_prompt(name: str) -> bool:
    app_name, revision = split_name_revision(name)
    if revision is None:
        what = f'all revisions of "{app_name}"'
    else:
        what = f'revision {revision} of "{app_name}"'
    answer = typer.prompt(
        f"You are about to delete {what}. Are you sure? [Y/n]",
        default="",
        show_default=False,
    )
    return str(answer or "").strip() == "Y"


def cmd_delete_application(args: argparse.Namespace, g: GlobalOpts) -> int:
    raw_name = _require_name(args.name)
    org = _require_org(args.org)
    fmt = output.validate_format(args.format)
    name, revision = split_name_revision(raw_name)

    if args.force:
        env = _require_env(args.env)
        shipyard_env = _shipyard_env(org, env)
        sys.stdout.write(f"Undeploying any active deployment of {name} in {shipyard_env}\n")
        deployment_commands.undeploy_deployment(g, org=org, env=env, name=name, fmt=fmt)
    elif not delete_prompt(raw_name):
        sys.stdout.write("Chose to cancel. Aborting.\n")
        return 0

    if revision is None:
        url = apps_url(g, org, name)
    else:
        url = apps_url(g, org, name, "version", str(revision))
    resp = auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g, method="DELETE", url=url, token=token, verbose_env=_verbose_env(g, org)
        ),
    )
    code = output.output_based_on_status(
        resp,
        success=f"\nDeletion of application {raw_name} successful.",
        failure=f"\nThere was an error deleting {raw_name}.",
        fmt=fmt,
    )
    if resp.status == 409:
        _eprint(DELETE_CONFLICT_HINT)
    return code
