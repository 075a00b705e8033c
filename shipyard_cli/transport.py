from __future__ import annotations

import http.client
import io
import json
import uuid
from dataclasses import dataclass
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from . import auth_inputs
from .cli_shared import GlobalOpts, OpError, UsageError, _eprint

_REDACTED_HEADERS = {"authorization"}


@dataclass(frozen=True)
class ApiResponse:
    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def _http_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
    timeout_seconds: float | None = 60,
    line_sink: Callable[[str], None] | None = None,
) -> tuple[int, dict[str, str], bytes]:
    req = Request(url, data=body, method=str(method).upper())
    for k, v in headers.items():
        req.add_header(k, v)
    try:
        with urlopen(req, timeout=timeout_seconds) as resp:
            status = int(getattr(resp, "status", 200))
            hdrs = {k.lower(): v for k, v in dict(resp.headers).items()}
            if line_sink is not None and 200 <= status < 300:
                for raw_line in resp:
                    line_sink(raw_line.decode("utf-8", errors="replace").rstrip("\r\n"))
                return status, hdrs, b""
            data = resp.read()
            return status, hdrs, data
    except HTTPError as e:
        hdrs = {k.lower(): v for k, v in dict(e.headers or {}).items()}
        data = e.read() if hasattr(e, "read") else b""
        return int(getattr(e, "code", 0) or 0), hdrs, data
    except (URLError, OSError, http.client.HTTPException) as e:
        raise OpError(f"http request failed: {e}") from e


def build_url(base: str, *segments: str, query: dict[str, Any] | None = None) -> str:
    url = base.rstrip("/")
    for seg in segments:
        s = str(seg).strip("/")
        if s:
            url += "/" + quote(s, safe=":/")
    query_clean = {
        k: str(v).lower() if isinstance(v, bool) else str(v)
        for k, v in (query or {}).items()
        if v is not None and str(v).strip() != ""
    }
    if query_clean:
        url += f"?{urlencode(query_clean)}"
    return url


def _print_verbose_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None,
    verbose_env: dict[str, str] | None,
) -> None:
    if verbose_env:
        _eprint("Current environment:")
        for k, v in verbose_env.items():
            if v:
                _eprint(f"{k}={v}")
    _eprint("\nRequest:")
    _eprint(f"{method.upper()} {url}")
    for k, v in sorted(headers.items()):
        shown = "REDACTED" if k.lower() in _REDACTED_HEADERS else v
        _eprint(f"{k}: {shown}")
    if body:
        _eprint(f"\n<{len(body)} byte body>")


def _print_verbose_response(resp: ApiResponse) -> None:
    _eprint("\nResponse:")
    _eprint(f"HTTP {resp.status}")
    for k, v in sorted(resp.headers.items()):
        _eprint(f"{k}: {v}")


def api_request(
    g: GlobalOpts,
    *,
    method: str,
    url: str,
    token: str,
    body: bytes | None = None,
    content_type: str | None = None,
    extra_headers: dict[str, str] | None = None,
    line_sink: Callable[[str], None] | None = None,
    verbose_env: dict[str, str] | None = None,
) -> ApiResponse:
    try:
        auth_inputs.preflight_bearer_request(endpoint=url, token=token, endpoint_name="API target")
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e

    headers = {"authorization": f"Bearer {token}"}
    if content_type:
        headers["content-type"] = content_type
    headers.update(extra_headers or {})

    if g.verbose:
        _print_verbose_request(
            method=method,
            url=url,
            headers=headers,
            body=body,
            verbose_env=verbose_env,
        )
    status, hdrs, data = _http_request(
        method=method,
        url=url,
        headers=headers,
        body=body,
        timeout_seconds=None if line_sink is not None else 60,
        line_sink=line_sink,
    )
    resp = ApiResponse(status=status, headers=hdrs, body=data)
    if g.verbose:
        _print_verbose_response(resp)
    return resp


def json_body(obj: Any) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def parse_json_response(resp: ApiResponse, *, label: str) -> Any:
    text = resp.text()
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except Exception as e:
        raise OpError(f"invalid JSON from {label}: {e}; body={text}") from e


def encode_multipart(
    *,
    fields: list[tuple[str, str]],
    files: list[tuple[str, str, bytes]],
    boundary: str | None = None,
) -> tuple[bytes, str]:
    """Encode form fields and file parts as multipart/form-data."""

    b = boundary or f"shipyardctl-{uuid.uuid4().hex}"
    out = io.BytesIO()
    for name, filename, data in files:
        out.write(f"--{b}\r\n".encode("utf-8"))
        out.write(
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode("utf-8")
        )
        out.write(b"Content-Type: application/octet-stream\r\n\r\n")
        out.write(data)
        out.write(b"\r\n")
    for name, value in fields:
        out.write(f"--{b}\r\n".encode("utf-8"))
        out.write(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode("utf-8"))
        out.write(str(value).encode("utf-8"))
        out.write(b"\r\n")
    out.write(f"--{b}--\r\n".encode("utf-8"))
    return out.getvalue(), f"multipart/form-data; boundary={b}"
