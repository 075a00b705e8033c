from __future__ import annotations

import argparse
import sys

from . import auth, config, output, transport
from .cli_shared import (
    GlobalOpts,
    UsageError,
    _load_json_object,
    _require_env,
    _require_name,
    _require_org,
    _require_str,
    _shipyard_env,
)
from .models import (
    DEFAULT_REPLICAS,
    Deployment,
    DeploymentPatch,
    parse_config_refs,
    parse_env_vars,
    split_name_revision,
)

ENROBER_API_PATH = "/beeswax/deploy/api/v1"


def environments_url(g: GlobalOpts, *segments: str, query: dict[str, object] | None = None) -> str:
    targets = config.resolve_targets(g)
    return transport.build_url(targets.cluster, ENROBER_API_PATH, "environments", *segments, query=query)


def deployments_url(
    g: GlobalOpts,
    org: str,
    env: str,
    *segments: str,
    query: dict[str, object] | None = None,
) -> str:
    return environments_url(g, _shipyard_env(org, env), "deployments", *segments, query=query)


def _verbose_env(g: GlobalOpts, org: str, env: str) -> dict[str, str]:
    return {
        "CLUSTER_TARGET": config.resolve_targets(g).cluster,
        "APIGEE_ORG": org,
        "APIGEE_ENV": env,
    }


def _send(
    g: GlobalOpts,
    *,
    method: str,
    url: str,
    org: str,
    env: str,
    body_obj: dict[str, object] | None = None,
    raw_body: bytes | None = None,
) -> transport.ApiResponse:
    body = raw_body
    content_type = None
    if body_obj is not None:
        body = transport.json_body(body_obj)
    if body is not None:
        content_type = "application/json"
    return auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g,
            method=method,
            url=url,
            token=token,
            body=body,
            content_type=content_type,
            verbose_env=_verbose_env(g, org, env),
        ),
    )


def _replicas(raw: int | None) -> int:
    if raw is None:
        return DEFAULT_REPLICAS
    if int(raw) < 0:
        raise UsageError("--replicas must be zero or greater")
    return int(raw)


def cmd_get_deployment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    fmt = output.validate_format(args.format)
    shipyard_env = _shipyard_env(org, env)
    if args.all:
        url = deployments_url(g, org, env)
        failure = f"\nThere was a problem retrieving deployments in {shipyard_env}"
        layout = output.LAYOUT_DEPLOYMENTS
    else:
        name = _require_name(args.name)
        url = deployments_url(g, org, env, name)
        failure = f"\nThere was a problem retrieving {name} in {shipyard_env}"
        layout = output.LAYOUT_DEPLOYMENT
    resp = _send(g, method="GET", url=url, org=org, env=env)
    return output.output_based_on_status(
        resp,
        failure=failure,
        fmt=fmt,
        default_fmt="json",
        layout=layout,
    )


def cmd_get_logs(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    name = _require_name(args.name)
    url = deployments_url(g, org, env, name, "logs", query={"previous": True if args.previous else None})
    resp = _send(g, method="GET", url=url, org=org, env=env)
    if resp.ok:
        sys.stdout.write(resp.text())
        return 0
    return output.output_based_on_status(
        resp,
        failure=f"\nThere was a problem retrieving logs for {name} in {_shipyard_env(org, env)}",
        fmt="raw",
    )


def undeploy_deployment(g: GlobalOpts, *, org: str, env: str, name: str, fmt: str | None) -> int:
    shipyard_env = _shipyard_env(org, env)
    resp = _send(g, method="DELETE", url=deployments_url(g, org, env, name), org=org, env=env)
    return output.output_based_on_status(
        resp,
        success=f"\nUndeployment of {name} in {shipyard_env} was successful",
        failure=f"\nThere was a problem undeploying {name} in {shipyard_env}",
        fmt=fmt,
    )


def cmd_undeploy_application(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    name = _require_name(args.name)
    fmt = output.validate_format(args.format)
    return undeploy_deployment(g, org=org, env=env, name=name, fmt=fmt)


def cmd_deploy_application(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    raw_name = _require_name(args.name)
    fmt = output.validate_format(args.format)
    name, revision = split_name_revision(raw_name)
    env_vars = parse_env_vars(args.env_vars) + parse_config_refs(args.edge_configs)
    shipyard_env = _shipyard_env(org, env)

    if args.force:
        patch = DeploymentPatch(
            revision=revision,
            replicas=None if args.replicas is None else _replicas(args.replicas),
            env_vars=env_vars,
        )
        resp = _send(
            g,
            method="PATCH",
            url=deployments_url(g, org, env, name),
            org=org,
            env=env,
            body_obj=patch.to_json(),
        )
        return output.output_based_on_status(
            resp,
            success=f"\nUpdate of {name} in {shipyard_env} was successful",
            failure=f"\nThere was a problem updating {name} in {shipyard_env}",
            fmt=fmt,
        )

    if revision is None:
        raise UsageError(
            "missing required revision number (pass --name name:revision, "
            "or --force to update an active deployment)"
        )

    dep = Deployment(
        deployment_name=name,
        revision=revision,
        replicas=_replicas(args.replicas),
        env_vars=env_vars,
    )
    resp = _send(
        g,
        method="POST",
        url=deployments_url(g, org, env),
        org=org,
        env=env,
        body_obj=dep.to_json(),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nCreation of {name} in {shipyard_env} was successful",
        failure=f"\nThere was a problem deploying {name} in {shipyard_env}",
        fmt=fmt,
    )


def cmd_create_deployment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    name = _require_name(args.name)
    fmt = output.validate_format(args.format)
    dep = Deployment(
        deployment_name=name,
        replicas=_replicas(args.replicas),
        env_vars=parse_env_vars(args.env_vars),
        public_hosts=_require_str(args.public_hosts, "required flag '--public-hosts'", hint="pass --public-hosts"),
        private_hosts=_require_str(args.private_hosts, "required flag '--private-hosts'", hint="pass --private-hosts"),
        pts_url=_require_str(args.pts_url, "required flag '--pts-url'", hint="pass --pts-url"),
    )
    shipyard_env = _shipyard_env(org, env)
    resp = _send(
        g,
        method="POST",
        url=deployments_url(g, org, env),
        org=org,
        env=env,
        body_obj=dep.to_json(),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nCreation of {name} in {shipyard_env} was successful",
        failure=f"\nThere was a problem creating {name} in {shipyard_env}",
        fmt=fmt,
    )


def cmd_patch_deployment(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    name = _require_name(args.name)
    fmt = output.validate_format(args.format)
    raw = _require_str(args.data, "patch document", hint="pass a JSON object, e.g. '{\"replicas\": 3}'")
    # Only the JSON shape is checked here.
    _load_json_object(raw=raw, label="patch document")
    shipyard_env = _shipyard_env(org, env)
    resp = _send(
        g,
        method="PATCH",
        url=deployments_url(g, org, env, name),
        org=org,
        env=env,
        raw_body=raw.encode("utf-8"),
    )
    return output.output_based_on_status(
        resp,
        success=f"\nPatch of {name} in {shipyard_env} was successful",
        failure=f"\nThere was a problem patching {name} in {shipyard_env}",
        fmt=fmt,
    )
