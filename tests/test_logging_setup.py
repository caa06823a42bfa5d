# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from taskpilot.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "m", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("taskpilot.engine", logging.DEBUG, True),
        ("py.warnings", logging.WARNING, False),
        ("py.warnings", logging.ERROR, True),
        ("openai", logging.INFO, False),
        ("httpx", logging.ERROR, True),
    ],
)
def test_console_shows_own_logs_and_only_errors_from_others(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown
