from __future__ import annotations

import base64
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any


class ShipyardCtlError(Exception):
    pass


class UsageError(ShipyardCtlError):
    pass


class OpError(ShipyardCtlError):
    pass


APIGEE_ORG = "APIGEE_ORG"
APIGEE_ENV = "APIGEE_ENV"
APIGEE_TOKEN = "APIGEE_TOKEN"
APIGEE_USERNAME = "APIGEE_USERNAME"
APIGEE_PASSWORD = "APIGEE_PASSWORD"
CLUSTER_TARGET = "CLUSTER_TARGET"
SSO_TARGET = "SSO_TARGET"
MGMT_API_TARGET = "MGMT_API_TARGET"
SHIPYARDCTL_CONFIG = "SHIPYARDCTL_CONFIG"

DEFAULT_CLUSTER_TARGET = "https://shipyard.apigee.com"
DEFAULT_SSO_TARGET = "https://login.apigee.com"
DEFAULT_MGMT_API_TARGET = "https://api.enterprise.apigee.com"

# edgecli:edgeclisecret, the public client id used by Apigee command-line tools.
SSO_CLIENT_ID = "edgecli"
SSO_CLIENT_SECRET = "edgeclisecret"


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


@dataclass(frozen=True)
class GlobalOpts:
    config_path: str
    verbose: bool = False
    quiet: bool = False


def _env_or_none(*names: str) -> str | None:
    for n in names:
        v = (os.environ.get(n) or "").strip()
        if v:
            return v
    return None


def _truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _require_str(val: str | None, name: str, *, hint: str) -> str:
    v = (val or "").strip()
    if not v:
        raise UsageError(f"missing {name} ({hint})")
    return v


def _require_org(org: str | None) -> str:
    return _require_str(
        org or _env_or_none(APIGEE_ORG),
        "required flag '--org'",
        hint=f"or set {APIGEE_ORG}",
    )


def _require_env(env: str | None) -> str:
    return _require_str(
        env or _env_or_none(APIGEE_ENV),
        "required flag '--env'",
        hint=f"or set {APIGEE_ENV}",
    )


def _require_name(name: str | None) -> str:
    return _require_str(name, "required flag '--name'", hint="pass --name")


def _shipyard_env(org: str, env: str) -> str:
    return f"{org}:{env}"


def _basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _print_json(obj: Any, *, pretty: bool = True) -> None:
    if pretty:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")
    else:
        sys.stdout.write(json.dumps(obj, separators=(",", ":"), sort_keys=True) + "\n")


def _load_json_object(*, raw: str, label: str) -> dict[str, Any]:
    try:
        val = json.loads(raw)
    except Exception as e:
        raise UsageError(f"invalid {label}: {e}") from e
    if not isinstance(val, dict):
        raise UsageError(f"invalid {label}: expected JSON object")
    return val


def _write_secure_json(*, path: Path, obj: dict[str, Any]) -> None:
    _write_secure_text(path=path, text=json.dumps(obj, indent=2, sort_keys=True) + "\n")


def _write_secure_text(*, path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except Exception as e:
        raise OpError(f"failed to apply 0600 permissions to {path}: {e}") from e
