from __future__ import annotations

import argparse
import shutil
import sys
import tempfile
from pathlib import Path

from . import auth, bundle, config, transport
from .cli_shared import (
    GlobalOpts,
    OpError,
    UsageError,
    _eprint,
    _require_env,
    _require_name,
    _require_org,
)


def _verbose_env(targets: config.Targets, org: str, env: str) -> dict[str, str]:
    return {"MGMT_API_TARGET": targets.mgmt_api, "APIGEE_ORG": org, "APIGEE_ENV": env}


def proxy_import_url(targets: config.Targets, org: str, name: str) -> str:
    return transport.build_url(
        targets.mgmt_api,
        "v1",
        "o",
        org,
        "apis",
        query={"action": "import", "validate": False, "name": name},
    )


def proxy_deploy_url(targets: config.Targets, org: str, env: str, name: str, revision: str) -> str:
    return transport.build_url(
        targets.mgmt_api,
        "v1",
        "o",
        org,
        "e",
        env,
        "apis",
        name,
        "revisions",
        revision,
        "deployments",
        query={"override": True},
    )


def cmd_create_bundle(args: argparse.Namespace, g: GlobalOpts) -> int:
    name = _require_name(args.name)
    save_dir = Path((args.save or "").strip() or ".").expanduser()
    if not save_dir.is_dir():
        raise UsageError(f"save directory not found: {save_dir}")
    with tempfile.TemporaryDirectory(prefix=f"{name}-bundle-") as tmp:
        zip_path = bundle.make_proxy_bundle(
            name,
            work_dir=Path(tmp),
            base_path=args.base_path,
            target_path=args.target_path,
        )
        dest = (save_dir / zip_path.name).resolve()
        if g.verbose:
            _eprint(f"Moving proxy bundle to {dest}")
        try:
            shutil.move(str(zip_path), str(dest))
        except OSError as e:
            raise OpError(f"unable to move proxy bundle to {dest}: {e}") from e
    sys.stdout.write(f"Wrote proxy bundle to {dest}\n")
    return 0


def _upload_bundle(
    g: GlobalOpts,
    targets: config.Targets,
    *,
    org: str,
    env: str,
    name: str,
    zip_bytes: bytes,
) -> str:
    url = proxy_import_url(targets, org, name)
    resp = auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g,
            method="POST",
            url=url,
            token=token,
            body=zip_bytes,
            content_type="application/octet-stream",
            verbose_env=_verbose_env(targets, org, env),
        ),
    )
    if resp.status not in (200, 201):
        raise OpError(f"error importing proxy bundle: status={resp.status} body={resp.text()}")
    doc = transport.parse_json_response(resp, label="proxy import")
    revision = str(doc.get("revision") or "").strip() if isinstance(doc, dict) else ""
    if not revision:
        raise OpError("proxy import response missing revision")
    return revision


def _deploy_revision(
    g: GlobalOpts,
    targets: config.Targets,
    *,
    org: str,
    env: str,
    name: str,
    revision: str,
) -> None:
    url = proxy_deploy_url(targets, org, env, name, revision)
    resp = auth.run_with_auth_retry(
        g,
        lambda token: transport.api_request(
            g,
            method="POST",
            url=url,
            token=token,
            body=b"",
            content_type="application/x-www-form-urlencoded",
            verbose_env=_verbose_env(targets, org, env),
        ),
    )
    if not resp.ok:
        raise OpError(f"error deploying proxy revision {revision}: status={resp.status} body={resp.text()}")


def cmd_deploy_proxy(args: argparse.Namespace, g: GlobalOpts) -> int:
    org = _require_org(args.org)
    env = _require_env(args.env)
    name = _require_name(args.name)
    targets = config.resolve_targets(g)

    zip_path_raw = (args.zip_path or "").strip()
    if zip_path_raw:
        zip_path = Path(zip_path_raw).expanduser()
        if not zip_path.is_file():
            raise UsageError(f"proxy bundle not found: {zip_path}")
        zip_bytes = zip_path.read_bytes()
    else:
        with tempfile.TemporaryDirectory(prefix=f"{org}_{env}_") as tmp:
            built = bundle.make_proxy_bundle(
                name,
                work_dir=Path(tmp),
                base_path=args.base_path,
                target_path=args.target_path,
            )
            zip_bytes = built.read_bytes()

    revision = _upload_bundle(g, targets, org=org, env=env, name=name, zip_bytes=zip_bytes)
    sys.stdout.write(f"Imported proxy {name} revision {revision}\n")
    _deploy_revision(g, targets, org=org, env=env, name=name, revision=revision)
    sys.stdout.write(f"Deployed proxy {name} revision {revision} to {org}:{env}\n")
    return 0
