"""Local packaging: application source archives and Edge API proxy bundles."""

from __future__ import annotations

import time
import zipfile
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .cli_shared import OpError, UsageError

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

PROXY_ROOT_DIR = "apiproxy"
BUNDLE_CREATED_BY = "shipyard@apigee.com"

# template name -> path relative to apiproxy/; "{name}" is replaced by the bundle name.
BUNDLE_LAYOUT = (
    ("proxy.xml", "{name}.xml"),
    ("proxy_endpoint.xml", "proxies/default.xml"),
    ("target_endpoint.xml", "targets/default.xml"),
    ("add_cors.xml", "policies/AddCors.xml"),
)


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["xml"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def _require_bundle_name(name: str) -> str:
    v = (name or "").strip()
    if not v:
        raise UsageError("missing required flag '--name' (pass --name)")
    if "/" in v or "\\" in v or v in {".", ".."}:
        raise UsageError(f"invalid bundle name {v!r}")
    return v


def _default_path(raw: str | None, name: str) -> str:
    v = (raw or "").strip()
    if not v or v == "/":
        return f"/{name}"
    return v if v.startswith("/") else f"/{v}"


def render_proxy_tree(
    dest_dir: Path,
    *,
    name: str,
    base_path: str | None = None,
    target_path: str | None = None,
) -> Path:
    """Render the apiproxy/ directory for ``name`` under ``dest_dir``."""

    bundle_name = _require_bundle_name(name)
    context = {
        "name": bundle_name,
        "base_path": _default_path(base_path, bundle_name),
        "target_path": _default_path(target_path, bundle_name),
        "created_at": int(time.time() * 1000),
        "created_by": BUNDLE_CREATED_BY,
    }
    root = dest_dir / PROXY_ROOT_DIR
    env = _get_env()
    for template_name, rel in BUNDLE_LAYOUT:
        out = root / rel.format(name=bundle_name)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(env.get_template(template_name).render(**context), encoding="utf-8")
    return root


def zip_directory(src: Path, zip_path: Path, *, include_base_dir: bool) -> Path:
    """Zip ``src`` recursively.

    With ``include_base_dir`` the archive entries are prefixed with the source
    directory name; otherwise the directory contents sit at the archive root.
    """

    src = src.resolve()
    if not src.is_dir():
        raise UsageError(f"directory not found: {src}")
    zip_path = zip_path.resolve()
    if zip_path.exists():
        zip_path.unlink()
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    base = src.parent if include_base_dir else src
    try:
        with zipfile.ZipFile(zip_path, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            for path in sorted(p for p in src.rglob("*") if p.is_file()):
                if path == zip_path:
                    continue
                zf.write(path, arcname=path.relative_to(base).as_posix())
    except OSError as e:
        raise OpError(f"failed to write archive {zip_path}: {e}") from e
    return zip_path


def make_proxy_bundle(
    name: str,
    *,
    work_dir: Path,
    base_path: str | None = None,
    target_path: str | None = None,
) -> Path:
    root = render_proxy_tree(work_dir, name=name, base_path=base_path, target_path=target_path)
    return zip_directory(root, work_dir / f"{name.strip()}.zip", include_base_dir=True)


def archive_application(directory: str, *, name: str, work_dir: Path) -> Path:
    src = Path(directory).expanduser()
    if not src.is_dir():
        raise UsageError(f"directory not found: {directory}")
    if not (src / "package.json").is_file():
        raise UsageError(f"no package.json found in {src.resolve()} (required at the project root)")
    return zip_directory(src, work_dir / f"{name}.zip", include_base_dir=False)
