"""Tests for rsrf.logging_config."""

import logging

from rsrf import setup_logging


def test_single_console_handler():
    logger = setup_logging()
    setup_logging()
    assert logger.name == "rsrf"
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_reports_written_to_file(tmp_path, workspace):
    log_file = tmp_path / "rsrf.log"
    logger = setup_logging(logging.INFO, log_file=str(log_file))
    workspace.scale_to(1, 0, "TOTAL")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    text = log_file.read_text(encoding="utf-8")
    assert "rsrf.statistics - INFO - Average for map 1" in text
