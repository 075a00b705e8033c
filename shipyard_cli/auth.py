from __future__ import annotations

import argparse
import json
import sys
from typing import Callable
from urllib.parse import urlencode

import typer

from . import auth_inputs, config, transport
from .cli_shared import (
    APIGEE_PASSWORD,
    APIGEE_TOKEN,
    APIGEE_USERNAME,
    SSO_CLIENT_ID,
    SSO_CLIENT_SECRET,
    GlobalOpts,
    OpError,
    UsageError,
    _basic_auth_header,
    _env_or_none,
    _eprint,
)

AUTH_FAILED_MESSAGE = "Unable to authenticate. Please check your SSO target URL is correct."


def _prompt_username() -> str:
    return str(typer.prompt("Enter your Apigee username")).strip()


def _prompt_password(username: str) -> str:
    return str(typer.prompt(f"Enter password for username '{username}'", hide_input=True))


def _prompt_mfa() -> str:
    if not sys.stdin.isatty():
        return ""
    raw = typer.prompt(
        "Enter your MFA token or just press 'enter' to skip",
        default="",
        show_default=False,
    )
    return str(raw or "").strip()


def _resolve_credentials(username: str | None, password: str | None) -> auth_inputs.BasicCredentials:
    try:
        return auth_inputs.resolve_basic_credentials(
            username=username,
            password=password,
            env_or_none=_env_or_none,
            username_env_names=(APIGEE_USERNAME,),
            password_env_names=(APIGEE_PASSWORD,),
            prompt_username=_prompt_username,
            prompt_password=_prompt_password,
        )
    except auth_inputs.AuthInputError as e:
        raise UsageError(str(e)) from e


def request_token(g: GlobalOpts, *, username: str, password: str, mfa: str = "") -> str:
    """Exchange Apigee credentials for a bearer token via the SSO password grant."""

    targets = config.resolve_targets(g)
    url = transport.build_url(targets.sso, "oauth", "token", query={"mfa_token": mfa})
    body = urlencode(
        {"username": username, "password": password, "grant_type": "password"}
    ).encode("utf-8")
    headers = {
        "authorization": _basic_auth_header(SSO_CLIENT_ID, SSO_CLIENT_SECRET),
        "content-type": "application/x-www-form-urlencoded;charset=utf-8",
        "accept": "application/json;charset=utf-8",
    }
    if g.verbose:
        _eprint(f"\nRequest:\nPOST {url}")
    status, _hdrs, raw = transport._http_request(method="POST", url=url, headers=headers, body=body)
    if g.verbose:
        _eprint(f"\nResponse:\nHTTP {status}")
    if status != 200:
        raise OpError("Invalid credentials. Failed to login.")
    text = raw.decode("utf-8", errors="replace")
    try:
        doc = json.loads(text)
    except Exception as e:
        raise OpError(f"invalid JSON from SSO token endpoint: {e}") from e
    token = str(doc.get("access_token") or "").strip() if isinstance(doc, dict) else ""
    if not token:
        raise OpError("SSO token response missing access_token")
    return token


def cmd_login(args: argparse.Namespace, g: GlobalOpts) -> int:
    creds = _resolve_credentials(args.username, args.password)
    mfa = args.mfa if args.mfa is not None else _prompt_mfa()
    token = request_token(g, username=creds.username, password=creds.password, mfa=(mfa or "").strip())
    sys.stdout.write("Writing credentials to current context\n")
    path = config.save_token(g, username=creds.username, token=token)
    sys.stdout.write(f"Successfully wrote credentials to {path}\n")
    return 0


def reauthenticate(g: GlobalOpts) -> str:
    if not g.quiet:
        _eprint("Authentication failed. Please log in again.")
    creds = _resolve_credentials(None, None)
    token = request_token(g, username=creds.username, password=creds.password, mfa=_prompt_mfa())
    config.save_token(g, username=creds.username, token=token)
    if _env_or_none(APIGEE_TOKEN):
        _eprint(f"Saved the new token to the current context. Unset {APIGEE_TOKEN} so later commands use it.")
    return token


def run_with_auth_retry(
    g: GlobalOpts,
    send: Callable[[str], transport.ApiResponse],
) -> transport.ApiResponse:
    """Send a request, and on a 401 log in again and send it exactly once more."""

    resp = send(config.resolve_token(g))
    if resp.status != 401:
        return resp
    resp = send(reauthenticate(g))
    if resp.status == 401:
        _eprint(AUTH_FAILED_MESSAGE)
        raise OpError("Command failed.")
    return resp
