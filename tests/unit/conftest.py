# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any, Callable

import pytest

from observability import logger


@pytest.fixture(autouse=True)
def log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture JSONL output instead of writing to stdout."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_enabled", True)
    return captured


@pytest.fixture
def logged_events(log_lines: list[str]) -> Callable[[], list[dict[str, Any]]]:
    def _events() -> list[dict[str, Any]]:
        return [json.loads(line) for line in log_lines]
    return _events
