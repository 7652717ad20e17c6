"""
Unit Tests for the logging utilities.
"""

import logging
import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_learning_tutor", "src"))

from adaptive_learning_tutor.logger import ColoredFormatter, get_logger


class TestStructuredLogger:
    """Test suite for StructuredLogger."""

    def test_data_payload_is_appended(self, caplog):
        logger = get_logger("adaptive_learning_tutor.test")

        with caplog.at_level(logging.INFO, logger="adaptive_learning_tutor.test"):
            logger.info("Session started", {"user": "u1", "steps": 3})

        assert caplog.records[0].getMessage() == "Session started | user=u1 steps=3"

    def test_success_is_info_with_marker(self, caplog):
        logger = get_logger("adaptive_learning_tutor.test")

        with caplog.at_level(logging.INFO, logger="adaptive_learning_tutor.test"):
            logger.success("Learning session completed")

        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "✅ Learning session completed"

    def test_error_includes_exception(self, caplog):
        logger = get_logger("adaptive_learning_tutor.test")

        with caplog.at_level(logging.ERROR, logger="adaptive_learning_tutor.test"):
            logger.error("Save failed.", error=ValueError("bad row"))

        assert caplog.records[0].getMessage() == "Save failed. Error: ValueError: bad row"

    def test_formatter_uses_component_icon(self):
        formatter = ColoredFormatter(use_colors=False)
        record = logging.LogRecord(
            "adaptive_learning_tutor.session_manager", logging.INFO, __file__, 1, "Created session", None, None
        )

        formatted = formatter.format(record)

        assert "💾" in formatted
        assert formatted.endswith("| Created session")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
