from __future__ import annotations

import json
import sys
from typing import Any

import yaml

from .cli_shared import OpError, UsageError, _eprint
from .transport import ApiResponse

FORMATS = ("json", "yaml", "raw", "table")

LAYOUT_APPS = "apps"
LAYOUT_APP = "app"
LAYOUT_APP_REVISION = "app-revision"
LAYOUT_DEPLOYMENT = "deployment"
LAYOUT_DEPLOYMENTS = "deployments"
LAYOUT_ENVIRONMENT = "environment"

APP_REVISION_LABEL = "edge/app.rev"

NOT_FOUND_MESSAGE = "Received a 404. Resource not found."


def validate_format(fmt: str | None) -> str | None:
    v = (fmt or "").strip().lower()
    if not v:
        return None
    if v not in FORMATS:
        raise UsageError(f"invalid --format {fmt!r} (expected one of: {', '.join(FORMATS)})")
    return v


def _cell(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = ",".join(str(v) for v in value if str(v).strip())
    text = str(value if value is not None else "").strip()
    if not text:
        return "-"
    return text


def _get(doc: Any, *path: str) -> Any:
    cur = doc
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _as_list(doc: Any, *, key: str | None = None) -> list[Any]:
    if key and isinstance(doc, dict):
        doc = doc.get(key)
    if isinstance(doc, list):
        return doc
    return []


def app_revision_label(labels: Any) -> Any:
    if isinstance(labels, dict):
        return labels.get(APP_REVISION_LABEL)
    return None


def render_table(*, headers: list[str], rows: list[list[str]], empty_message: str = "") -> str:
    if not rows:
        return empty_message
    widths: list[int] = [len(h) for h in headers]
    for row in rows:
        for i, val in enumerate(row):
            widths[i] = max(widths[i], len(val))
    lines = [
        "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip(),
        "  ".join("-" * widths[i] for i in range(len(headers))),
    ]
    for row in rows:
        lines.append("  ".join(row[i].ljust(widths[i]) for i in range(len(headers))).rstrip())
    return "\n".join(lines)


def _deployment_row(doc: Any) -> list[str]:
    return [
        _cell(_get(doc, "metadata", "name")),
        _cell(_get(doc, "metadata", "creationTimestamp")),
        _cell(app_revision_label(_get(doc, "metadata", "labels"))),
    ]


def _table_for_layout(layout: str, doc: Any) -> str:
    if layout == LAYOUT_APPS:
        rows = [[_cell(_get(item, "name"))] for item in _as_list(doc)]
        return render_table(headers=["AVAILABLE APPLICATIONS"], rows=rows, empty_message="No applications.")
    if layout == LAYOUT_APP:
        rows = [[_cell(_get(item, "revision"))] for item in _as_list(doc)]
        return render_table(headers=["AVAILABLE REVISIONS"], rows=rows, empty_message="No revisions.")
    if layout == LAYOUT_APP_REVISION:
        rows = [[_cell(_get(doc, "revision")), _cell(_get(doc, "created")), _cell(_get(doc, "imageId"))]]
        return render_table(headers=["REVISION", "CREATED", "IMAGE-ID"], rows=rows)
    if layout == LAYOUT_DEPLOYMENT:
        return render_table(headers=["NAME", "CREATED", "APP-REVISION"], rows=[_deployment_row(doc)])
    if layout == LAYOUT_DEPLOYMENTS:
        rows = [_deployment_row(item) for item in _as_list(doc, key="items")]
        return render_table(headers=["NAME", "CREATED", "APP-REVISION"], rows=rows, empty_message="No deployments.")
    if layout == LAYOUT_ENVIRONMENT:
        name = _get(doc, "environmentName") or _get(doc, "name") or _get(doc, "metadata", "name")
        created = _get(doc, "created") or _get(doc, "creationTimestamp") or _get(doc, "metadata", "creationTimestamp")
        rows = [[_cell(name), _cell(_get(doc, "hostNames")), _cell(created)]]
        return render_table(headers=["NAME", "HOST-NAMES", "CREATED"], rows=rows)
    raise UsageError(f"table output is not available for {layout!r}")


def format_output(fmt: str | None, body: bytes, *, layout: str | None = None) -> str | None:
    if not fmt or not body:
        return None
    text = body.decode("utf-8", errors="replace")
    if fmt == "raw":
        return text.rstrip("\n")
    if fmt == "yaml":
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise OpError(f"unable to parse response body: {e}") from e
        return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False).rstrip("\n")

    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise OpError(f"unable to parse response body as JSON: {e}") from e
    if fmt == "json":
        return json.dumps(doc, indent=2)
    if fmt == "table":
        if not layout:
            return json.dumps(doc, indent=2)
        return _table_for_layout(layout, doc)
    raise UsageError(f"invalid format {fmt!r}")


def _print_error_body(fmt: str | None, resp: ApiResponse, *, layout: str | None) -> None:
    try:
        out = format_output(fmt or "raw", resp.body, layout=layout)
    except OpError:
        out = format_output("raw", resp.body)
    if out:
        _eprint(out)


def output_based_on_status(
    resp: ApiResponse,
    *,
    success: str = "",
    failure: str = "",
    fmt: str | None = None,
    default_fmt: str | None = None,
    layout: str | None = None,
) -> int:
    """Print the outcome of one API call and return the command exit code.

    A success line is printed only when the caller did not pick an explicit
    format; the body is printed whenever a format applies. 401 prints nothing
    so the caller can retry after logging in again.
    """

    effective = fmt or default_fmt
    if resp.ok:
        if success and fmt is None:
            sys.stdout.write(success + "\n")
        out = format_output(effective, resp.body, layout=layout)
        if out:
            sys.stdout.write(out + "\n")
        return 0
    if resp.status == 401:
        return 1
    if failure:
        _eprint(failure)
    if resp.status == 403:
        _print_error_body("raw", resp, layout=None)
    elif resp.status == 404:
        _eprint(NOT_FOUND_MESSAGE)
    else:
        _print_error_body("json" if effective == "table" else effective, resp, layout=None)
    return 1
