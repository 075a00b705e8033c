import json

import pytest

from shipyard_cli.cli_shared import GlobalOpts

_ENV_NAMES = (
    "APIGEE_ORG",
    "APIGEE_ENV",
    "APIGEE_TOKEN",
    "APIGEE_USERNAME",
    "APIGEE_PASSWORD",
    "CLUSTER_TARGET",
    "SSO_TARGET",
    "MGMT_API_TARGET",
    "SHIPYARDCTL_CONFIG",
)

CLUSTER = "https://cluster.example.invalid"
SSO = "https://sso.example.invalid"
MGMT = "https://mgmt.example.invalid"


class FakeHttp:
    """Scripted stand-in for transport._http_request."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._responses: list[tuple[int, dict, bytes, list[str] | None]] = []

    def queue(self, status: int, body=b"", *, headers: dict | None = None, lines: list[str] | None = None):
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self._responses.append((status, dict(headers or {}), body, lines))
        return self

    def __call__(self, *, method, url, headers, body=None, timeout_seconds=60, line_sink=None):
        self.calls.append({"method": method, "url": url, "headers": dict(headers), "body": body})
        if not self._responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        status, hdrs, data, lines = self._responses.pop(0)
        if line_sink is not None and lines is not None and 200 <= status < 300:
            for line in lines:
                line_sink(line)
            return status, hdrs, b""
        return status, hdrs, data

    def json_body(self, idx: int):
        return json.loads(self.calls[idx]["body"].decode("utf-8"))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHIPYARDCTL_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("CLUSTER_TARGET", CLUSTER)
    monkeypatch.setenv("SSO_TARGET", SSO)
    monkeypatch.setenv("MGMT_API_TARGET", MGMT)
    monkeypatch.setenv("APIGEE_TOKEN", "tok-123")


@pytest.fixture
def fake_http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr("shipyard_cli.transport._http_request", fake)
    return fake


@pytest.fixture
def g(tmp_path) -> GlobalOpts:
    return GlobalOpts(config_path=str(tmp_path / "config.json"))
