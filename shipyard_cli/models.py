"""Request DTOs sent to the Shipyard and Enrober APIs.

Each DTO is built for a single request and serialised with ``to_json()``;
optional fields that are unset are left out of the payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from .cli_shared import UsageError

DEFAULT_RUNTIME = "node:4"
SUPPORTED_RUNTIMES = ("node",)
DEFAULT_REPLICAS = 1


@dataclass(frozen=True)
class ConfigRef:
    name: str
    key: str

    def to_json(self) -> dict[str, Any]:
        return {"edgeConfigRef": {"name": self.name, "key": self.key}}


@dataclass(frozen=True)
class EnvVar:
    name: str
    value: str | None = None
    value_from: ConfigRef | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.value is not None:
            out["value"] = self.value
        if self.value_from is not None:
            out["valueFrom"] = self.value_from.to_json()
        return out


@dataclass(frozen=True)
class Application:
    name: str
    runtime: str = DEFAULT_RUNTIME
    env_vars: tuple[str, ...] = ()

    def form_fields(self) -> list[tuple[str, str]]:
        fields = [("envVar", v) for v in self.env_vars]
        fields.append(("name", self.name))
        fields.append(("runtime", self.runtime))
        return fields


@dataclass(frozen=True)
class Deployment:
    deployment_name: str
    revision: int | None = None
    replicas: int = DEFAULT_REPLICAS
    env_vars: tuple[EnvVar, ...] = ()
    public_hosts: str | None = None
    private_hosts: str | None = None
    pts_url: str | None = None

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"deploymentName": self.deployment_name, "replicas": self.replicas}
        if self.revision is not None:
            out["revision"] = self.revision
        if self.public_hosts is not None:
            out["publicHosts"] = self.public_hosts
        if self.private_hosts is not None:
            out["privateHosts"] = self.private_hosts
        if self.pts_url is not None:
            out["ptsUrl"] = self.pts_url
        out["envVars"] = [v.to_json() for v in self.env_vars]
        return out


@dataclass(frozen=True)
class DeploymentPatch:
    revision: int | None = None
    replicas: int | None = None
    env_vars: tuple[EnvVar, ...] = ()

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.revision is not None:
            out["revision"] = self.revision
        if self.replicas is not None:
            out["replicas"] = self.replicas
        if self.env_vars:
            out["envVars"] = [v.to_json() for v in self.env_vars]
        return out


@dataclass(frozen=True)
class Environment:
    environment_name: str
    host_names: tuple[str, ...] = field(default_factory=tuple)

    def to_json(self) -> dict[str, Any]:
        return {"environmentName": self.environment_name, "hostNames": list(self.host_names)}


@dataclass(frozen=True)
class EnvironmentPatch:
    host_names: tuple[str, ...]

    def to_json(self) -> dict[str, Any]:
        return {"hostNames": list(self.host_names)}


def parse_env_vars(raw: Iterable[str] | None) -> tuple[EnvVar, ...]:
    out: list[EnvVar] = []
    for item in raw or []:
        name, sep, value = str(item).partition("=")
        if not sep or not name.strip():
            raise UsageError(f"invalid --env-var {item!r} (expected KEY=VAL)")
        out.append(EnvVar(name=name.strip(), value=value))
    return tuple(out)


def parse_config_refs(raw: Iterable[str] | None) -> tuple[EnvVar, ...]:
    out: list[EnvVar] = []
    for item in raw or []:
        name, sep, ref = str(item).partition("=")
        ref_name, ref_sep, ref_key = ref.partition(":")
        if not sep or not ref_sep or not name.strip() or not ref_name.strip() or not ref_key.strip():
            raise UsageError(f"invalid --edge-config {item!r} (expected KEY=configName:configKey)")
        out.append(
            EnvVar(
                name=name.strip(),
                value_from=ConfigRef(name=ref_name.strip(), key=ref_key.strip()),
            )
        )
    return tuple(out)


def split_name_revision(raw: str) -> tuple[str, int | None]:
    name, sep, rev = str(raw or "").strip().partition(":")
    name = name.strip()
    if not name:
        raise UsageError("missing application name (expected name[:revision])")
    if not sep:
        return name, None
    try:
        revision = int(rev.strip())
    except ValueError as e:
        raise UsageError(f"invalid revision {rev!r} in {raw!r} (expected an integer)") from e
    return name, revision


def validate_runtime(runtime: str | None) -> str:
    value = (runtime or "").strip() or DEFAULT_RUNTIME
    base = value.split(":", 1)[0]
    if base not in SUPPORTED_RUNTIMES:
        supported = ", ".join(SUPPORTED_RUNTIMES)
        raise UsageError(f"unsupported runtime {base!r} (supported runtimes: {supported})")
    return value
