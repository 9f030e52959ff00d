"""
Ephemeral credential fetching.

Calls the external token-issuing endpoint, which holds the long-lived API
key and mints a short-lived session token:

    POST {endpoint}  {"sessionConfig": {...}, "model": "..."}
      -> 200 {"success": true, "token": "...", "expires_at": 1730000000}
      -> 4xx/5xx {"error": "..."}

Rules:
- One HTTP round trip per call, bounded by timeout_s.
- No retries here; the reconnect loop owns retry policy.
- Every failure is a CredentialError with a distinguishable reason.
- The token is never logged in full.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from constants import CREDENTIAL_TIMEOUT_S
from errors import CredentialError, CredentialFailure
from observability.logger import log_event, redact_secret
from session.session_config import SessionConfig


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class Credential:
    """
    Opaque short-lived token scoped to one streaming session.

    expires_at: epoch seconds, when the endpoint reports it.
    """
    token: str = field(repr=False)
    expires_at: float | None = None

    def __repr__(self) -> str:
        return f"Credential(token={redact_secret(self.token)}, expires_at={self.expires_at})"


class CredentialFetcher:
    """
    Fetches one Credential per call from the token endpoint.

    Instances are cheap and hold no connection state; a fresh
    aiohttp.ClientSession is used per request.
    """

    def __init__(
        self,
        endpoint_url: str,
        *,
        model: str | None = None,
        timeout_s: float = CREDENTIAL_TIMEOUT_S,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._model = model
        self._timeout_s = timeout_s

    async def __call__(self, config: SessionConfig) -> Credential:
        return await self.fetch(config)

    async def fetch(self, config: SessionConfig) -> Credential:
        """
        Request a credential for the given session settings.

        Raises:
            CredentialError for every failure mode.
        """
        body: dict[str, Any] = {"sessionConfig": config.to_token_request()}
        if self._model:
            body["model"] = self._model

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CREDENTIAL_REQUESTED",
            "endpoint": self._endpoint_url,
            "timeout_s": self._timeout_s,
        })

        timeout = aiohttp.ClientTimeout(total=self._timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self._endpoint_url, json=body) as resp:
                    status = resp.status
                    text = await resp.text(errors="replace")
        except asyncio.TimeoutError as e:
            raise self._fail(
                CredentialFailure.TIMEOUT,
                "Token request timeout: the server took too long to respond. "
                "Please try again.",
            ) from e
        except aiohttp.ClientError as e:
            raise self._fail(
                CredentialFailure.NETWORK,
                f"Could not reach the token endpoint ({type(e).__name__}). "
                "Please check your connection and try again.",
            ) from e

        data = self._parse_json(text)

        if not 200 <= status < 300:
            detail = data.get("error") if isinstance(data, dict) else None
            if not isinstance(detail, str) or not detail:
                detail = "Failed to get session token"
            raise self._fail(
                CredentialFailure.HTTP_STATUS,
                f"Could not obtain a session token (HTTP {status}): {detail}",
                status=status,
            )

        if not isinstance(data, dict):
            raise self._fail(
                CredentialFailure.MALFORMED_RESPONSE,
                "Invalid token response: the token endpoint did not return a JSON object.",
            )

        token = data.get("token")
        if not data.get("success") or not isinstance(token, str) or not token:
            raise self._fail(
                CredentialFailure.MISSING_TOKEN,
                "Invalid token response: no session token was returned.",
            )

        expires_at = data.get("expires_at")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            expires_at = None

        credential = Credential(token=token, expires_at=expires_at)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CREDENTIAL_RECEIVED",
            "token": redact_secret(token),
            "expires_at": expires_at,
        })
        return credential

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_json(text: str) -> Any:
        """Parsed body, or None when it is not JSON."""
        try:
            return json.loads(text)
        except ValueError:
            return None

    def _fail(
        self,
        reason: CredentialFailure,
        message: str,
        *,
        status: int | None = None,
    ) -> CredentialError:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CREDENTIAL_FAILED",
            "reason": reason.value,
            "status": status,
            "message": message,
        })
        return CredentialError(reason, message, status=status)
