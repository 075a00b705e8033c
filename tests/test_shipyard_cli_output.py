import json

import pytest

from shipyard_cli.cli_shared import UsageError
from shipyard_cli.output import (
    LAYOUT_APP,
    LAYOUT_APP_REVISION,
    LAYOUT_APPS,
    LAYOUT_DEPLOYMENT,
    LAYOUT_DEPLOYMENTS,
    LAYOUT_ENVIRONMENT,
    NOT_FOUND_MESSAGE,
    format_output,
    output_based_on_status,
    render_table,
    validate_format,
)
from shipyard_cli.transport import ApiResponse


def _resp(status: int, body) -> ApiResponse:
    if isinstance(body, (dict, list)):
        body = json.dumps(body)
    return ApiResponse(status=status, headers={}, body=str(body).encode("utf-8"))


def test_validate_format():
    assert validate_format(None) is None
    assert validate_format(" YAML ") == "yaml"
    with pytest.raises(UsageError, match="invalid --format 'xml'"):
        validate_format("xml")


def test_render_table_aligns_columns():
    out = render_table(headers=["NAME", "CREATED"], rows=[["a", "2020"], ["longer-name", "-"]])
    assert out.splitlines() == [
        "NAME         CREATED",
        "-----------  -------",
        "a            2020",
        "longer-name  -",
    ]


def test_render_table_empty_message():
    assert render_table(headers=["X"], rows=[], empty_message="Nothing.") == "Nothing."


def test_format_output_json_yaml_raw():
    body = b'{"b": 1, "a": [1, 2]}'
    assert format_output("json", body) == '{\n  "b": 1,\n  "a": [\n    1,\n    2\n  ]\n}'
    assert format_output("yaml", body) == "b: 1\na:\n- 1\n- 2"
    assert format_output("raw", body) == '{"b": 1, "a": [1, 2]}'
    assert format_output(None, body) is None
    assert format_output("json", b"") is None


def test_table_layouts_for_applications():
    apps = json.dumps([{"name": "alpha"}, {"name": "beta"}]).encode()
    assert format_output("table", apps, layout=LAYOUT_APPS).splitlines() == [
        "AVAILABLE APPLICATIONS",
        "----------------------",
        "alpha",
        "beta",
    ]
    assert format_output("table", b"[]", layout=LAYOUT_APPS) == "No applications."

    revisions = json.dumps([{"revision": 1}, {"revision": 2}]).encode()
    assert format_output("table", revisions, layout=LAYOUT_APP).splitlines()[2:] == ["1", "2"]

    rev = json.dumps({"revision": 2, "created": "2016-01-01", "imageId": "img-1"}).encode()
    lines = format_output("table", rev, layout=LAYOUT_APP_REVISION).splitlines()
    assert lines[0].split() == ["REVISION", "CREATED", "IMAGE-ID"]
    assert lines[2].split() == ["2", "2016-01-01", "img-1"]


def test_table_layouts_for_deployments_and_environment():
    dep = {
        "metadata": {
            "name": "hello",
            "creationTimestamp": "2016-01-01T00:00:00Z",
            "labels": {"edge/app.rev": "3"},
        }
    }
    lines = format_output("table", json.dumps(dep).encode(), layout=LAYOUT_DEPLOYMENT).splitlines()
    assert lines[0].split() == ["NAME", "CREATED", "APP-REVISION"]
    assert lines[2].split() == ["hello", "2016-01-01T00:00:00Z", "3"]

    listing = json.dumps({"items": [dep, {"metadata": {"name": "bare"}}]}).encode()
    lines = format_output("table", listing, layout=LAYOUT_DEPLOYMENTS).splitlines()
    assert lines[3].split() == ["bare", "-", "-"]

    env = {"environmentName": "acme:test", "hostNames": ["a.example.com", "b.example.com"]}
    lines = format_output("table", json.dumps(env).encode(), layout=LAYOUT_ENVIRONMENT).splitlines()
    assert lines[2].split() == ["acme:test", "a.example.com,b.example.com", "-"]


def test_success_line_only_without_explicit_format(capsys):
    resp = _resp(200, {"ok": True})
    assert output_based_on_status(resp, success="Done", default_fmt="json") == 0
    out = capsys.readouterr().out
    assert out.startswith("Done\n")
    assert '"ok": true' in out

    assert output_based_on_status(resp, success="Done", fmt="raw") == 0
    assert capsys.readouterr().out == '{"ok": true}\n'


def test_success_without_format_prints_only_success_line(capsys):
    assert output_based_on_status(_resp(201, {"ok": True}), success="Created") == 0
    assert capsys.readouterr().out == "Created\n"


def test_unauthorized_prints_nothing(capsys):
    assert output_based_on_status(_resp(401, "nope"), success="s", failure="f") == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_forbidden_prints_raw_body(capsys):
    assert output_based_on_status(_resp(403, "forbidden: no access"), failure="Failed", fmt="json") == 1
    err = capsys.readouterr().err
    assert "Failed" in err
    assert "forbidden: no access" in err


def test_not_found_prints_message(capsys):
    assert output_based_on_status(_resp(404, "{}"), failure="Failed") == 1
    err = capsys.readouterr().err
    assert err.splitlines() == ["Failed", NOT_FOUND_MESSAGE]


def test_other_errors_print_body_as_json_when_table_was_requested(capsys):
    code = output_based_on_status(
        _resp(500, {"message": "boom"}),
        failure="Failed",
        default_fmt="table",
        layout=LAYOUT_APPS,
    )
    assert code == 1
    err = capsys.readouterr().err
    assert '"message": "boom"' in err


def test_other_errors_fall_back_to_raw_for_non_json_bodies(capsys):
    assert output_based_on_status(_resp(502, "bad gateway"), failure="Failed", fmt="json") == 1
    assert "bad gateway" in capsys.readouterr().err
