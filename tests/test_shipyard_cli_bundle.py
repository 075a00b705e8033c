import argparse
import io
import zipfile

import pytest

from shipyard_cli import bundle
from shipyard_cli.cli_shared import OpError, UsageError
from shipyard_cli.proxy_commands import cmd_create_bundle, cmd_deploy_proxy

MGMT = "https://mgmt.example.invalid"


def test_render_proxy_tree_layout_and_defaults(tmp_path):
    root = bundle.render_proxy_tree(tmp_path, name="hello", base_path="/")
    assert root == tmp_path / "apiproxy"
    files = sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())
    assert files == ["hello.xml", "policies/AddCors.xml", "proxies/default.xml", "targets/default.xml"]

    proxy = (root / "hello.xml").read_text(encoding="utf-8")
    assert '<APIProxy revision="1" name="hello">' in proxy
    assert "<CreatedBy>shipyard@apigee.com</CreatedBy>" in proxy
    assert "<BasePath>/hello</BasePath>" in (root / "proxies" / "default.xml").read_text(encoding="utf-8")
    assert "/hello" in (root / "targets" / "default.xml").read_text(encoding="utf-8")


def test_render_proxy_tree_custom_paths(tmp_path):
    root = bundle.render_proxy_tree(tmp_path, name="hello", base_path="api/v1", target_path="/svc")
    assert "<BasePath>/api/v1</BasePath>" in (root / "proxies" / "default.xml").read_text(encoding="utf-8")
    assert "/svc" in (root / "targets" / "default.xml").read_text(encoding="utf-8")


def test_render_proxy_tree_rejects_bad_names(tmp_path):
    with pytest.raises(UsageError):
        bundle.render_proxy_tree(tmp_path, name="../evil")


def test_make_proxy_bundle_zip_root_is_apiproxy(tmp_path):
    zip_path = bundle.make_proxy_bundle("hello", work_dir=tmp_path)
    assert zip_path.name == "hello.zip"
    with zipfile.ZipFile(zip_path) as zf:
        assert sorted(zf.namelist()) == [
            "apiproxy/hello.xml",
            "apiproxy/policies/AddCors.xml",
            "apiproxy/proxies/default.xml",
            "apiproxy/targets/default.xml",
        ]


def test_archive_application_contents_at_root(tmp_path):
    src = tmp_path / "app"
    src.mkdir()
    (src / "package.json").write_text("{}", encoding="utf-8")
    (src / "server.js").write_text("", encoding="utf-8")
    out = tmp_path / "work"
    out.mkdir()
    zip_path = bundle.archive_application(str(src), name="hello", work_dir=out)
    with zipfile.ZipFile(zip_path) as zf:
        assert sorted(zf.namelist()) == ["package.json", "server.js"]


def test_archive_application_missing_directory(tmp_path):
    with pytest.raises(UsageError, match="directory not found"):
        bundle.archive_application(str(tmp_path / "missing"), name="hello", work_dir=tmp_path)


def test_create_bundle_saves_zip(g, tmp_path, capsys):
    save = tmp_path / "out"
    save.mkdir()
    args = argparse.Namespace(name="hello", save=str(save), base_path=None, target_path=None)
    assert cmd_create_bundle(args, g) == 0
    dest = (save / "hello.zip").resolve()
    assert dest.is_file()
    assert capsys.readouterr().out == f"Wrote proxy bundle to {dest}\n"


def test_create_bundle_missing_save_dir(g, tmp_path):
    args = argparse.Namespace(name="hello", save=str(tmp_path / "nope"), base_path=None, target_path=None)
    with pytest.raises(UsageError, match="save directory not found"):
        cmd_create_bundle(args, g)


def _proxy_args(**overrides):
    base = dict(org="acme", env="test", name="hello", base_path=None, target_path=None, zip_path=None)
    base.update(overrides)
    return argparse.Namespace(**base)


def test_deploy_proxy_imports_then_deploys(g, fake_http, capsys):
    fake_http.queue(201, {"name": "hello", "revision": "4"}).queue(200, "{}")
    assert cmd_deploy_proxy(_proxy_args(), g) == 0

    upload, deploy = fake_http.calls
    assert upload["method"] == "POST"
    assert upload["url"] == f"{MGMT}/v1/o/acme/apis?action=import&validate=false&name=hello"
    assert upload["headers"]["content-type"] == "application/octet-stream"
    with zipfile.ZipFile(io.BytesIO(upload["body"])) as zf:
        assert "apiproxy/hello.xml" in zf.namelist()

    assert deploy["method"] == "POST"
    assert deploy["url"] == f"{MGMT}/v1/o/acme/e/test/apis/hello/revisions/4/deployments?override=true"

    out = capsys.readouterr().out
    assert "Imported proxy hello revision 4" in out
    assert "Deployed proxy hello revision 4 to acme:test" in out


def test_deploy_proxy_uses_given_zip(g, fake_http, tmp_path):
    zip_path = tmp_path / "custom.zip"
    zip_path.write_bytes(b"PK-custom")
    fake_http.queue(200, {"revision": 1}).queue(200, "{}")
    assert cmd_deploy_proxy(_proxy_args(zip_path=str(zip_path)), g) == 0
    assert fake_http.calls[0]["body"] == b"PK-custom"


def test_deploy_proxy_missing_zip(g, fake_http, tmp_path):
    with pytest.raises(UsageError, match="proxy bundle not found"):
        cmd_deploy_proxy(_proxy_args(zip_path=str(tmp_path / "nope.zip")), g)
    assert fake_http.calls == []


def test_deploy_proxy_import_failure(g, fake_http):
    fake_http.queue(400, "bundle invalid")
    with pytest.raises(OpError, match="error importing proxy bundle: status=400 body=bundle invalid"):
        cmd_deploy_proxy(_proxy_args(), g)
    assert len(fake_http.calls) == 1


def test_deploy_proxy_deploy_failure(g, fake_http):
    fake_http.queue(201, {"revision": "2"}).queue(409, "conflict")
    with pytest.raises(OpError, match="error deploying proxy revision 2"):
        cmd_deploy_proxy(_proxy_args(), g)
