"""Tests for logging setup."""

import logging
from unittest.mock import patch

import structlog

from videohub.logging import NOISY_LOGGERS, get_logger, service_context, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_binds_service_context(self) -> None:
        """Test every record carries the service and backend names."""
        with patch("videohub.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "debug"
            mock_settings.store_backend = "memory"
            mock_settings.blob_backend = "stub"
            setup_logging()

        context = structlog.contextvars.get_contextvars()
        assert context == {"service": "videohub", "store_backend": "memory", "blob_backend": "stub"}

    def test_levels(self) -> None:
        """Test the package logger follows settings while libraries stay quiet."""
        with patch("videohub.logging.settings") as mock_settings:
            mock_settings.log_format = "console"
            mock_settings.log_level = "debug"
            mock_settings.store_backend = "sql"
            mock_settings.blob_backend = "local"
            setup_logging()

        assert logging.getLogger("videohub").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_repeat_setup_keeps_one_handler(self) -> None:
        """Test calling setup twice does not duplicate output."""
        setup_logging()
        setup_logging()

        ours = [
            h
            for h in logging.getLogger().handlers
            if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
        ]
        assert len(ours) == 1


def test_service_context_reads_settings() -> None:
    """Test the bound context reflects the configured backends."""
    with patch("videohub.logging.settings") as mock_settings:
        mock_settings.store_backend = "sql"
        mock_settings.blob_backend = "cloudinary"
        assert service_context()["blob_backend"] == "cloudinary"


def test_get_logger() -> None:
    """Test module loggers are structlog loggers."""
    logger = get_logger("videohub.tests")
    assert hasattr(logger, "info")
