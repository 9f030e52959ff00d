# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any, Awaitable, Callable

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from errors import CredentialError, CredentialFailure
from session.credentials import Credential, CredentialFetcher
from session.session_config import SessionConfig


Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

TOKEN = "ek_live_0123456789abcdefghijklmnop"


def _fetch(
    handler: Handler,
    *,
    timeout_s: float = 5.0,
    model: str | None = "gpt-4o-realtime-preview-2024-10-01",
    received: list[dict[str, Any]] | None = None,
) -> Credential:
    async def _wrapped(request: web.Request) -> web.StreamResponse:
        if received is not None:
            received.append(await request.json())
        return await handler(request)

    async def _run() -> Credential:
        app = web.Application()
        app.router.add_post("/api/openai-token", _wrapped)
        server = TestServer(app)
        await server.start_server()
        try:
            fetcher = CredentialFetcher(
                str(server.make_url("/api/openai-token")),
                model=model,
                timeout_s=timeout_s,
            )
            return await fetcher(SessionConfig(instructions="Be a tutor.", voice="nova"))
        finally:
            await server.close()

    return asyncio.run(_run())


def test_success_returns_token_and_posts_session_config() -> None:
    received: list[dict[str, Any]] = []

    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"success": True, "token": TOKEN, "expires_at": 1730000000})

    credential = _fetch(handler, received=received)

    assert credential.token == TOKEN
    assert credential.expires_at == 1730000000

    body = received[0]
    assert body["model"] == "gpt-4o-realtime-preview-2024-10-01"
    assert body["sessionConfig"]["instructions"] == "Be a tutor."
    assert body["sessionConfig"]["voice"] == "nova"


def test_token_never_appears_in_logs_or_repr(log_lines: list[str]) -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"success": True, "token": TOKEN})

    credential = _fetch(handler)

    assert TOKEN not in repr(credential)
    assert all(TOKEN not in line for line in log_lines)
    events = [json.loads(line)["event_type"] for line in log_lines]
    assert "CREDENTIAL_RECEIVED" in events


def test_http_401_is_an_actionable_credential_error() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"error": "Unauthorized"}, status=401)

    with pytest.raises(CredentialError) as excinfo:
        _fetch(handler)

    error = excinfo.value
    assert error.reason is CredentialFailure.HTTP_STATUS
    assert error.status == 401
    assert "token" in str(error).lower()
    assert "401" in str(error)
    assert "Unauthorized" in str(error)


def test_http_500_without_json_body() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.Response(status=500, text="<html>boom</html>")

    with pytest.raises(CredentialError) as excinfo:
        _fetch(handler)

    assert excinfo.value.reason is CredentialFailure.HTTP_STATUS
    assert excinfo.value.status == 500


def test_non_object_body_is_malformed() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response(["token"])

    with pytest.raises(CredentialError) as excinfo:
        _fetch(handler)

    assert excinfo.value.reason is CredentialFailure.MALFORMED_RESPONSE


@pytest.mark.parametrize(
    "body",
    [
        {"success": False, "token": TOKEN},
        {"success": True},
        {"success": True, "token": ""},
        {"success": True, "token": 42},
    ],
)
def test_missing_token(body: dict[str, Any]) -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response(body)

    with pytest.raises(CredentialError) as excinfo:
        _fetch(handler)

    assert excinfo.value.reason is CredentialFailure.MISSING_TOKEN


def test_non_numeric_expiry_is_ignored() -> None:
    async def handler(_: web.Request) -> web.Response:
        return web.json_response({"success": True, "token": TOKEN, "expires_at": "soon"})

    assert _fetch(handler).expires_at is None


def test_slow_endpoint_times_out() -> None:
    async def handler(_: web.Request) -> web.Response:
        await asyncio.sleep(1.0)
        return web.json_response({"success": True, "token": TOKEN})

    with pytest.raises(CredentialError) as excinfo:
        _fetch(handler, timeout_s=0.2)

    assert excinfo.value.reason is CredentialFailure.TIMEOUT
    assert "timeout" in str(excinfo.value).lower()


def test_unreachable_endpoint_is_a_network_error() -> None:
    async def _run() -> Credential:
        fetcher = CredentialFetcher("http://127.0.0.1:1/api/openai-token", timeout_s=5.0)
        return await fetcher.fetch(SessionConfig(instructions="x"))

    with pytest.raises(CredentialError) as excinfo:
        asyncio.run(_run())

    assert excinfo.value.reason is CredentialFailure.NETWORK
