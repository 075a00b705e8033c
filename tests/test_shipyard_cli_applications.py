import argparse
import io
import zipfile

import pytest

from shipyard_cli import application_commands
from shipyard_cli.application_commands import (
    BUILD_STARTED_MESSAGE,
    DELETE_CONFLICT_HINT,
    cmd_delete_application,
    cmd_get_application,
    cmd_get_applications,
    cmd_import_application,
    delete_prompt,
)
from shipyard_cli.cli_shared import OpError, UsageError

APPS_URL = "https://cluster.example.invalid/beeswax/images/api/v1/organizations/acme/apps"
DEPLOYMENTS_URL = "https://cluster.example.invalid/beeswax/deploy/api/v1/environments/acme:test/deployments"


def _project(tmp_path):
    src = tmp_path / "project"
    (src / "lib").mkdir(parents=True)
    (src / "package.json").write_text('{"name": "hello"}', encoding="utf-8")
    (src / "index.js").write_text("console.log('hi')\n", encoding="utf-8")
    (src / "lib" / "util.js").write_text("module.exports = {}\n", encoding="utf-8")
    return src


def _import_args(directory, **overrides):
    base = dict(
        org="acme",
        name="hello",
        directory=str(directory),
        runtime="node:4",
        env_vars=["NODE_ENV=production"],
        stream=False,
    )
    base.update(overrides)
    return argparse.Namespace(**base)


def _multipart_zip(body: bytes) -> zipfile.ZipFile:
    start = body.index(b"\r\n\r\n") + 4
    end = body.index(b"\r\n--", start)
    return zipfile.ZipFile(io.BytesIO(body[start:end]))


def test_get_applications_renders_table(g, fake_http, capsys):
    fake_http.queue(200, [{"name": "alpha"}, {"name": "beta"}])
    code = cmd_get_applications(argparse.Namespace(org="acme", format=None), g)
    assert code == 0

    call = fake_http.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == APPS_URL
    assert call["headers"]["authorization"] == "Bearer tok-123"

    out = capsys.readouterr().out
    assert "Available applications:" in out
    assert "AVAILABLE APPLICATIONS" in out
    assert "beta" in out


def test_get_applications_org_from_env(g, fake_http, monkeypatch, capsys):
    monkeypatch.setenv("APIGEE_ORG", "acme")
    fake_http.queue(200, [])
    assert cmd_get_applications(argparse.Namespace(org=None, format="json"), g) == 0
    assert fake_http.calls[0]["url"] == APPS_URL
    assert capsys.readouterr().out == "[]\n"


def test_get_applications_requires_org(g, fake_http):
    with pytest.raises(UsageError, match=r"missing required flag '--org' \(or set APIGEE_ORG\)"):
        cmd_get_applications(argparse.Namespace(org=None, format=None), g)
    assert fake_http.calls == []


def test_get_application_revision_uses_version_path(g, fake_http, capsys):
    fake_http.queue(200, {"revision": 3, "created": "2016-01-01", "imageId": "img"})
    assert cmd_get_application(argparse.Namespace(org="acme", name="hello:3", format=None), g) == 0
    assert fake_http.calls[0]["url"] == f"{APPS_URL}/hello/version/3"
    assert "IMAGE-ID" in capsys.readouterr().out


def test_get_application_quotes_name_in_url(g, fake_http):
    fake_http.queue(200, [])
    assert cmd_get_application(argparse.Namespace(org="acme", name="my app", format="json"), g) == 0
    assert fake_http.calls[0]["url"] == f"{APPS_URL}/my%20app"


def test_get_application_not_found(g, fake_http, capsys):
    fake_http.queue(404, "")
    assert cmd_get_application(argparse.Namespace(org="acme", name="ghost", format=None), g) == 1
    err = capsys.readouterr().err
    assert "There was an error retrieving ghost from acme" in err
    assert "Received a 404. Resource not found." in err


def test_import_application_posts_multipart_and_checks_build(g, fake_http, tmp_path, capsys):
    src = _project(tmp_path)
    fake_http.queue(
        201,
        lines=[
            "Step 1/3 : FROM node:4",
            "Organization: acme | Application: hello | Revision: 3",
        ],
    )
    assert cmd_import_application(_import_args(src), g) == 0

    call = fake_http.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == APPS_URL
    assert call["headers"]["content-type"].startswith("multipart/form-data; boundary=")
    body = call["body"]
    assert b'name="file"; filename="hello.zip"' in body
    assert b'name="envVar"\r\n\r\nNODE_ENV=production\r\n' in body
    assert b'name="name"\r\n\r\nhello\r\n' in body
    assert b'name="runtime"\r\n\r\nnode:4\r\n' in body

    names = sorted(_multipart_zip(body).namelist())
    assert names == ["index.js", "lib/util.js", "package.json"]

    out = capsys.readouterr().out
    assert BUILD_STARTED_MESSAGE in out
    assert "Step 1/3" not in out
    assert out.rstrip().endswith("Organization: acme | Application: hello | Revision: 3")


def test_import_application_stream_echoes_lines(g, fake_http, tmp_path, capsys):
    src = _project(tmp_path)
    fake_http.queue(201, lines=["Step 1/3 : FROM node:4", "Organization: acme | Application: hello | Revision: 3"])
    assert cmd_import_application(_import_args(src, stream=True), g) == 0
    out = capsys.readouterr().out
    assert "Step 1/3 : FROM node:4" in out
    assert out.count("Revision: 3") == 1


def test_import_application_failed_build_reports_output(g, fake_http, tmp_path):
    src = _project(tmp_path)
    fake_http.queue(201, lines=["Step 1/3 : FROM node:4", "npm ERR! missing script"])
    with pytest.raises(OpError, match="npm ERR! missing script"):
        cmd_import_application(_import_args(src), g)


def test_import_application_error_status_prints_body(g, fake_http, tmp_path, capsys):
    src = _project(tmp_path)
    fake_http.queue(400, "bad runtime")
    assert cmd_import_application(_import_args(src), g) == 1
    assert "bad runtime" in capsys.readouterr().out


def test_import_application_requires_package_json(g, fake_http, tmp_path):
    src = tmp_path / "empty"
    src.mkdir()
    with pytest.raises(UsageError, match="no package.json"):
        cmd_import_application(_import_args(src), g)
    assert fake_http.calls == []


def test_delete_prompt_only_accepts_capital_y(monkeypatch):
    monkeypatch.setattr("shipyard_cli.application_commands.typer.prompt", lambda *_a, **_k: "Y")
    assert delete_prompt("hello") is True
    monkeypatch.setattr("shipyard_cli.application_commands.typer.prompt", lambda *_a, **_k: "y")
    assert delete_prompt("hello") is False


def test_delete_prompt_names_single_revision(monkeypatch):
    asked: list[str] = []

    def fake_prompt(text, **_kwargs):
        asked.append(text)
        return "Y"

    monkeypatch.setattr("shipyard_cli.application_commands.typer.prompt", fake_prompt)
    delete_prompt("hello:2")
    delete_prompt("hello")
    assert asked[0].startswith('You are about to delete revision 2 of "hello".')
    assert asked[1].startswith('You are about to delete all revisions of "hello".')


def test_delete_application_cancelled(g, fake_http, monkeypatch, capsys):
    monkeypatch.setattr(application_commands, "delete_prompt", lambda _name: False)
    args = argparse.Namespace(org="acme", env=None, name="hello", force=False, format=None)
    assert cmd_delete_application(args, g) == 0
    assert "Chose to cancel. Aborting." in capsys.readouterr().out
    assert fake_http.calls == []


def test_delete_application_confirmed_single_revision(g, fake_http, monkeypatch, capsys):
    monkeypatch.setattr(application_commands, "delete_prompt", lambda _name: True)
    fake_http.queue(200, "")
    args = argparse.Namespace(org="acme", env=None, name="hello:2", force=False, format=None)
    assert cmd_delete_application(args, g) == 0
    assert fake_http.calls[0]["method"] == "DELETE"
    assert fake_http.calls[0]["url"] == f"{APPS_URL}/hello/version/2"
    assert "Deletion of application hello:2 successful." in capsys.readouterr().out


def test_delete_application_force_undeploys_first(g, fake_http, capsys):
    fake_http.queue(200, "").queue(200, "")
    args = argparse.Namespace(org="acme", env="test", name="hello", force=True, format=None)
    assert cmd_delete_application(args, g) == 0
    assert [(c["method"], c["url"]) for c in fake_http.calls] == [
        ("DELETE", f"{DEPLOYMENTS_URL}/hello"),
        ("DELETE", f"{APPS_URL}/hello"),
    ]


def test_delete_application_force_requires_env(g, fake_http):
    args = argparse.Namespace(org="acme", env=None, name="hello", force=True, format=None)
    with pytest.raises(UsageError, match="--env"):
        cmd_delete_application(args, g)


def test_delete_application_conflict_prints_hint(g, fake_http, monkeypatch, capsys):
    monkeypatch.setattr(application_commands, "delete_prompt", lambda _name: True)
    fake_http.queue(409, '{"message": "deployed"}')
    args = argparse.Namespace(org="acme", env=None, name="hello", force=False, format=None)
    assert cmd_delete_application(args, g) == 1
    assert DELETE_CONFLICT_HINT in capsys.readouterr().err
