"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No connection logic
- No protocol constants (see constants.py)
- No runtime mutation
- Never holds the long-lived API key; only the token endpoint that does
"""

from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass

from constants import CONNECT_TIMEOUT_S, CREDENTIAL_TIMEOUT_S, RETRY_MAX_ATTEMPTS


DEFAULT_TOKEN_ENDPOINT_URL = "http://localhost:3000/api/openai-token"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"


def _optional_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    return int(raw)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed down to the CLI wiring.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    token_endpoint_url: str
    realtime_url: str
    realtime_model: str

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    credential_timeout_s: float
    connect_timeout_s: float
    max_connect_attempts: int

    # ------------------------------------------------------------------
    # Audio devices (None = system default)
    # ------------------------------------------------------------------

    input_device_index: int | None
    output_device_index: int | None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    @property
    def realtime_ws_url(self) -> str:
        """Realtime URL with the model query parameter."""
        parts = urllib.parse.urlsplit(self.realtime_url)
        query = urllib.parse.parse_qsl(parts.query)
        query = [(k, v) for k, v in query if k != "model"]
        query.append(("model", self.realtime_model))
        return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            token_endpoint_url=os.environ.get("TOKEN_ENDPOINT_URL", DEFAULT_TOKEN_ENDPOINT_URL),
            realtime_url=os.environ.get("REALTIME_URL", DEFAULT_REALTIME_URL),
            realtime_model=os.environ.get("REALTIME_MODEL", DEFAULT_REALTIME_MODEL),

            credential_timeout_s=float(
                os.environ.get("CREDENTIAL_TIMEOUT_S", CREDENTIAL_TIMEOUT_S)
            ),
            connect_timeout_s=float(os.environ.get("CONNECT_TIMEOUT_S", CONNECT_TIMEOUT_S)),
            max_connect_attempts=int(
                os.environ.get("MAX_CONNECT_ATTEMPTS", RETRY_MAX_ATTEMPTS)
            ),

            input_device_index=_optional_int("INPUT_DEVICE_INDEX"),
            output_device_index=_optional_int("OUTPUT_DEVICE_INDEX"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
