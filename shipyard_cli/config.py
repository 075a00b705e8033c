"""Persisted shipyardctl configuration.

The config file holds named contexts, each with the API targets and the last
token obtained by ``shipyardctl login``. Environment variables always win over
the stored values so one-off invocations do not need to touch the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cli_shared import (
    APIGEE_TOKEN,
    CLUSTER_TARGET,
    DEFAULT_CLUSTER_TARGET,
    DEFAULT_MGMT_API_TARGET,
    DEFAULT_SSO_TARGET,
    MGMT_API_TARGET,
    SHIPYARDCTL_CONFIG,
    SSO_TARGET,
    GlobalOpts,
    UsageError,
    _env_or_none,
    _load_json_object,
    _write_secure_json,
)

DEFAULT_CONTEXT_NAME = "default"


@dataclass
class ContextEntry:
    cluster_target: str = DEFAULT_CLUSTER_TARGET
    sso_target: str = DEFAULT_SSO_TARGET
    mgmt_api_target: str = DEFAULT_MGMT_API_TARGET
    username: str = ""
    token: str = ""

    def to_json(self) -> dict[str, str]:
        return {
            "clusterTarget": self.cluster_target,
            "ssoTarget": self.sso_target,
            "mgmtApiTarget": self.mgmt_api_target,
            "username": self.username,
            "token": self.token,
        }

    @classmethod
    def from_json(cls, doc: dict[str, Any]) -> "ContextEntry":
        return cls(
            cluster_target=str(doc.get("clusterTarget") or DEFAULT_CLUSTER_TARGET).strip(),
            sso_target=str(doc.get("ssoTarget") or DEFAULT_SSO_TARGET).strip(),
            mgmt_api_target=str(doc.get("mgmtApiTarget") or DEFAULT_MGMT_API_TARGET).strip(),
            username=str(doc.get("username") or "").strip(),
            token=str(doc.get("token") or "").strip(),
        )


@dataclass
class ShipyardConfig:
    current_context: str = DEFAULT_CONTEXT_NAME
    contexts: dict[str, ContextEntry] = field(default_factory=dict)

    def current(self) -> ContextEntry:
        entry = self.contexts.get(self.current_context)
        if entry is None:
            entry = ContextEntry()
            self.contexts[self.current_context] = entry
        return entry

    def to_json(self) -> dict[str, Any]:
        return {
            "currentContext": self.current_context,
            "contexts": {name: entry.to_json() for name, entry in sorted(self.contexts.items())},
        }


@dataclass(frozen=True)
class Targets:
    cluster: str
    sso: str
    mgmt_api: str


def default_config_path() -> str:
    return str(Path("~/.shipyardctl/config.json").expanduser())


def config_file(g: GlobalOpts) -> Path:
    raw = (g.config_path or "").strip() or _env_or_none(SHIPYARDCTL_CONFIG) or default_config_path()
    return Path(raw).expanduser().resolve()


def load_config(path: Path) -> ShipyardConfig:
    if not path.exists():
        return ShipyardConfig()
    doc = _load_json_object(
        raw=path.read_text(encoding="utf-8"),
        label=f"config file {path}",
    )
    contexts_doc = doc.get("contexts")
    contexts: dict[str, ContextEntry] = {}
    if isinstance(contexts_doc, dict):
        for name, entry in contexts_doc.items():
            if isinstance(entry, dict):
                contexts[str(name)] = ContextEntry.from_json(entry)
    current = str(doc.get("currentContext") or DEFAULT_CONTEXT_NAME).strip()
    return ShipyardConfig(current_context=current, contexts=contexts)


def save_config(path: Path, cfg: ShipyardConfig) -> None:
    _write_secure_json(path=path, obj=cfg.to_json())


def resolve_targets(g: GlobalOpts) -> Targets:
    entry = load_config(config_file(g)).current()
    return Targets(
        cluster=(_env_or_none(CLUSTER_TARGET) or entry.cluster_target).rstrip("/"),
        sso=(_env_or_none(SSO_TARGET) or entry.sso_target).rstrip("/"),
        mgmt_api=(_env_or_none(MGMT_API_TARGET) or entry.mgmt_api_target).rstrip("/"),
    )


def resolve_token(g: GlobalOpts) -> str:
    tok = _env_or_none(APIGEE_TOKEN)
    if tok:
        return tok
    tok = load_config(config_file(g)).current().token
    if not tok:
        raise UsageError(f"missing auth token (run 'shipyardctl login' or set {APIGEE_TOKEN})")
    return tok


def save_token(g: GlobalOpts, *, username: str, token: str) -> Path:
    path = config_file(g)
    cfg = load_config(path)
    entry = cfg.current()
    entry.username = username
    entry.token = token
    save_config(path, cfg)
    return path


def use_context(g: GlobalOpts, name: str) -> Path:
    path = config_file(g)
    cfg = load_config(path)
    if name not in cfg.contexts:
        known = ", ".join(sorted(cfg.contexts)) or "none"
        raise UsageError(f"unknown context {name!r} (known contexts: {known})")
    cfg.current_context = name
    save_config(path, cfg)
    return path


def new_context(
    g: GlobalOpts,
    name: str,
    *,
    cluster_target: str | None = None,
    sso_target: str | None = None,
    mgmt_api_target: str | None = None,
    activate: bool = True,
) -> Path:
    ctx_name = (name or "").strip()
    if not ctx_name:
        raise UsageError("context name cannot be empty")
    path = config_file(g)
    cfg = load_config(path)
    if ctx_name in cfg.contexts:
        raise UsageError(f"context {ctx_name!r} already exists")
    cfg.contexts[ctx_name] = ContextEntry(
        cluster_target=(cluster_target or DEFAULT_CLUSTER_TARGET).rstrip("/"),
        sso_target=(sso_target or DEFAULT_SSO_TARGET).rstrip("/"),
        mgmt_api_target=(mgmt_api_target or DEFAULT_MGMT_API_TARGET).rstrip("/"),
    )
    if activate:
        cfg.current_context = ctx_name
    save_config(path, cfg)
    return path


def redacted_view(g: GlobalOpts) -> dict[str, Any]:
    doc = load_config(config_file(g)).to_json()
    for entry in doc["contexts"].values():
        if entry.get("token"):
            entry["token"] = "REDACTED"
    return doc
