from __future__ import annotations

import logging
import sys
from io import StringIO

from inventory_import.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    assert setup_logging() is setup_logging()
    assert get_logger() is setup_logging()
    assert len(get_logger().handlers) == 1


def test_labeled_prefixes():
    stream = StringIO()
    logger = logging.getLogger("test_inventory_import_labels")
    logger.setLevel(logging.INFO)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    handler = logging.StreamHandler(stream)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(SUMMARY_LEVEL, "file=a.xlsx rows=1")

    lines = stream.getvalue().strip().splitlines()
    assert lines == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY file=a.xlsx rows=1",
    ]


def test_module_loggers_propagate_into_app_logger(capsys):
    setup_logging()
    logging.getLogger(f"{APP_LOGGER_NAME}.services.merge").warning("row 3: merge failed")
    log_summary("file=x.xlsx rows=0")
    out = capsys.readouterr().out
    assert "WARN row 3: merge failed" in out
    assert "SUMMARY file=x.xlsx rows=0" in out


def test_exception_info_is_appended():
    formatter = LabeledFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    text = formatter.format(record)
    assert text.startswith("ERROR failed")
    assert "ValueError: boom" in text
