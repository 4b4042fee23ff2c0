"""Tests for shared observability logging."""

import logging
import time

import pytest

from mandate_matching.observability import get_logger, set_log_level


def test_get_logger_formats_utc_timestamps(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fixed = time.struct_time((2025, 1, 2, 3, 4, 5, 3, 2, 0))

    def fake_gmtime(_: float | None = None) -> time.struct_time:
        return fixed

    monkeypatch.setattr(time, "gmtime", fake_gmtime)

    logger = get_logger("mandate_matching.test.logging")
    logger.info("Ranked %d candidates", 3)

    captured = capsys.readouterr()
    assert (
        "2025-01-02T03:04:05+0000 INFO mandate_matching.test.logging: Ranked 3 candidates"
        in captured.err
    )


def test_get_logger_is_singleton_per_name() -> None:
    name = "mandate_matching.test.logging.singleton"
    logger = get_logger(name)

    assert get_logger(name) is logger
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_set_log_level_applies_to_engine_loggers() -> None:
    engine_logger = get_logger("mandate_matching.test.logging.level")
    other_logger = get_logger("someone_else.logging.level")
    try:
        set_log_level("debug")

        assert engine_logger.level == logging.DEBUG
        assert other_logger.level == logging.INFO
    finally:
        set_log_level("INFO")


def test_set_log_level_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        set_log_level("chatty")


def test_loggers_created_after_set_log_level_inherit_it() -> None:
    try:
        set_log_level("WARNING")

        logger = get_logger("mandate_matching.test.logging.late")

        assert logger.level == logging.WARNING
    finally:
        set_log_level("INFO")
