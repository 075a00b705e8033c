from __future__ import annotations

import argparse

from . import output
from .cli_shared import GlobalOpts, UsageError, _require_env, _require_org, _shipyard_env
from .deployment_commands import _send, environments_url
from .models import Environment, EnvironmentPatch


def _host_names(raw: list[str] | None) -> tuple[str, ...]:
    out: list[str] = []
    for item in raw or []:
        for part in str(item).split(","):
            v = part.strip()
            if v and v not in out:
                out.append(v)
    return tuple(out)


def cmd_get_environment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    fmt = output.validate_format(args.format)
    shipyard_env = _shipyard_env(org, env)
    resp = _send(g, method="GET", url=environments_url(g, shipyard_env), org=org, env=env)
    return output.output_based_on_status(
        resp,
        success=f"\nAvailable information for {shipyard_env}:",
        failure=f"\nThere was an error retrieving {shipyard_env}",
        fmt=fmt,
        default_fmt="table",
        layout=output.LAYOUT_ENVIRONMENT,
    )


def cmd_create_environment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    fmt = output.validate_format(args.format)
    shipyard_env = _shipyard_env(org, env)
    doc = Environment(environment_name=shipyard_env, host_names=_host_names(args.host_names))
    resp = _send(
        g,
        method="POST",
        url=environments_url(g),
        org=org,
        env=env,
        body_obj=doc.to_json(),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nCreation of {shipyard_env} was successful",
        failure=f"\nThere was a problem creating {shipyard_env}",
        fmt=fmt,
    )


def cmd_update_environment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    fmt = output.validate_format(args.format)
    host_names = _host_names(args.host_names)
    if not host_names:
        raise UsageError("missing required flag '--host-name' (pass one or more host names)")
    shipyard_env = _shipyard_env(org, env)
    resp = _send(
        g,
        method="PATCH",
        url=environments_url(g, shipyard_env),
        org=org,
        env=env,
        body_obj=EnvironmentPatch(host_names=host_names).to_json(),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nUpdate of {shipyard_env} was successful",
        failure=f"\nThere was a problem updating {shipyard_env}",
        fmt=fmt,
    )


def cmd_delete_environment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    fmt = output.validate_format(args.format)
    shipyard_env = _shipyard_env(org, env)
    resp = _send(g, method="DELETE", url=environments_url(g, shipyard_env), org=org, env=env)
    return output.output_based_on_status(
        resp,
        success=f"\nDeletion of {shipyard_env} was successful",
        failure=f"\nThere was a problem deleting {shipyard_env}",
        fmt=fmt,
    )


def cmd_sync_environment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    shipyard_env = _shipyard_env(org, env)
    resp = _send(g, method="PATCH", url=environments_url(g, shipyard_env), org=org, env=env)
    return output.output_based_on_status(
        resp,
        success=f"\nSync of {shipyard_env} was successful",
        failure=f"\nThere was a problem syncing {shipyard_env}",
        default_fmt="raw",
    )
