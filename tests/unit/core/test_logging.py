# tests/unit/core/test_logging.py
"""Tests for logging configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from stepwise.core.logging import configure_logging


def test_json_output_goes_to_stderr(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(json_output=True, level="INFO")

    structlog.get_logger("stepwise.test").info("pipeline_compiled", steps=3)

    captured = capsys.readouterr()
    assert captured.out == ""
    record = json.loads(captured.err.strip().splitlines()[-1])
    assert record["event"] == "pipeline_compiled"
    assert record["steps"] == 3
    assert record["level"] == "info"
    assert "_record" not in record


def test_level_filters_debug(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(level="WARNING")

    structlog.get_logger("stepwise.test").debug("hidden")

    assert "hidden" not in capsys.readouterr().err


def test_stdlib_loggers_share_format(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(json_output=True)

    logging.getLogger("some.library").warning("plain %s", "message")

    record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert record["event"] == "plain message"


def test_noisy_loggers_held_at_warning() -> None:
    configure_logging(level="DEBUG")

    assert logging.getLogger("dynaconf").level == logging.WARNING
