from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence
from urllib.parse import urlparse


class AuthInputError(ValueError):
    """Raised when CLI auth inputs are missing or conflicting."""


class MissingEndpointError(AuthInputError):
    """Raised when an endpoint is required but missing."""


class InvalidTokenShapeError(AuthInputError):
    """Raised when a supplied bearer token cannot be sent in a header."""


class PreflightValidationError(AuthInputError):
    """Raised when strict client-side preflight validation fails."""


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str


@dataclass(frozen=True)
class BearerRequestAuth:
    endpoint: str
    token: str


def _require_non_empty(val: str | None, *, name: str, hint: str) -> str:
    out = (val or "").strip()
    if not out:
        raise AuthInputError(f"missing {name} ({hint})")
    return out


def resolve_basic_credentials(
    *,
    username: str | None,
    password: str | None,
    env_or_none: Callable[..., str | None],
    username_env_names: Sequence[str] = ("APIGEE_USERNAME",),
    password_env_names: Sequence[str] = ("APIGEE_PASSWORD",),
    prompt_username: Callable[[], str] | None = None,
    prompt_password: Callable[[str], str] | None = None,
) -> BasicCredentials:
    """Resolve login credentials from flags, then env, then interactive prompts."""

    username_hint_env = str(username_env_names[0]).strip() if username_env_names else "APIGEE_USERNAME"
    password_hint_env = str(password_env_names[0]).strip() if password_env_names else "APIGEE_PASSWORD"

    raw_username = username or env_or_none(*username_env_names)
    if not (raw_username or "").strip() and prompt_username is not None:
        raw_username = prompt_username()
    resolved_username = _require_non_empty(
        raw_username,
        name="username",
        hint=f"--username or env {username_hint_env}",
    )

    raw_password = password or env_or_none(*password_env_names)
    if not (raw_password or "") and prompt_password is not None:
        raw_password = prompt_password(resolved_username)
    resolved_password = _require_non_empty(
        raw_password,
        name="password",
        hint=f"--password or env {password_hint_env}",
    )
    return BasicCredentials(username=resolved_username, password=resolved_password)


def preflight_bearer_request(
    *,
    endpoint: str,
    token: str,
    endpoint_name: str,
    token_name: str = "auth token",
) -> BearerRequestAuth:
    endpoint_value = (endpoint or "").strip().rstrip("/")
    if not endpoint_value:
        raise MissingEndpointError(f"missing {endpoint_name} (set it in the config context or env)")
    parsed = urlparse(endpoint_value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise PreflightValidationError(
            f"{endpoint_name} must be an absolute http(s) URL; got {endpoint_value!r}"
        )

    token_value = _require_non_empty(
        token,
        name=token_name,
        hint="run 'shipyardctl login' or set APIGEE_TOKEN",
    )
    if any(ch.isspace() for ch in token_value):
        raise InvalidTokenShapeError(f"{token_name} must not contain whitespace")

    return BearerRequestAuth(endpoint=endpoint_value, token=token_value)
