# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig

_VARS = [
    "ENV",
    "TOKEN_ENDPOINT_URL",
    "REALTIME_URL",
    "REALTIME_MODEL",
    "CREDENTIAL_TIMEOUT_S",
    "CONNECT_TIMEOUT_S",
    "MAX_CONNECT_ATTEMPTS",
    "INPUT_DEVICE_INDEX",
    "OUTPUT_DEVICE_INDEX",
    "ENABLE_JSON_LOGS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = AppConfig.load_from_env()

    assert cfg.env == "dev"
    assert cfg.token_endpoint_url == "http://localhost:3000/api/openai-token"
    assert cfg.credential_timeout_s == 30.0
    assert cfg.connect_timeout_s == 15.0
    assert cfg.max_connect_attempts == 5
    assert cfg.input_device_index is None
    assert cfg.output_device_index is None
    assert cfg.enable_json_logs is True
    assert cfg.realtime_ws_url == (
        "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview-2024-10-01"
    )


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOKEN_ENDPOINT_URL", "https://tutor.example/api/token")
    monkeypatch.setenv("REALTIME_URL", "wss://proxy.example/realtime?region=eu&model=old")
    monkeypatch.setenv("REALTIME_MODEL", "gpt-4o-realtime-preview")
    monkeypatch.setenv("CONNECT_TIMEOUT_S", "7.5")
    monkeypatch.setenv("MAX_CONNECT_ATTEMPTS", "2")
    monkeypatch.setenv("INPUT_DEVICE_INDEX", "4")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")

    cfg = AppConfig.load_from_env()

    assert cfg.token_endpoint_url == "https://tutor.example/api/token"
    assert cfg.connect_timeout_s == 7.5
    assert cfg.max_connect_attempts == 2
    assert cfg.input_device_index == 4
    assert cfg.enable_json_logs is False
    assert cfg.realtime_ws_url == (
        "wss://proxy.example/realtime?region=eu&model=gpt-4o-realtime-preview"
    )


def test_bad_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CONNECT_ATTEMPTS", "lots")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()
