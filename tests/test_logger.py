"""
Tests for logger functionality.
"""

import logging

import pytest

from jobproxy.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with default settings."""
        logger = StructuredLogger(
            name="test",
            level="INFO",
            log_dir=tmp_path,
            enable_console=False,
        )

        assert logger.logger.name == "test"
        assert logger.metrics["api_calls"] == 0

    def test_log_methods(self, tmp_path):
        """All log level methods should work."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        # Should not raise exceptions
        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_log_with_context(self, tmp_path):
        """Context is appended as JSON, including non-JSON types."""
        logger = StructuredLogger(
            name="test_context",
            log_dir=tmp_path,
            enable_console=False,
        )

        logger.info("Message with context", page=3, failed_pages=[2], path=tmp_path)

        for handler in logger.logger.handlers:
            handler.flush()
        content = next(tmp_path.glob("jobproxy_*.log")).read_text(encoding="utf-8")
        assert '"page": 3' in content
        assert '"failed_pages": [2]' in content

    def test_metrics_tracking(self, tmp_path):
        """Metrics should be tracked correctly."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        logger.record_api_call()
        logger.record_api_call()
        logger.record_auth_attempt()
        logger.record_token_refresh()
        logger.record_page_success()
        logger.record_page_success()
        logger.record_page_success()
        logger.record_page_failure("UpstreamError")
        logger.record_cache_hit()
        logger.record_cache_refresh()

        metrics = logger.get_metrics()

        assert metrics["api_calls"] == 2
        assert metrics["auth_attempts"] == 1
        assert metrics["token_refreshes"] == 1
        assert metrics["pages_fetched"] == 3
        assert metrics["pages_failed"] == 1
        assert metrics["page_success_rate"] == 0.75
        assert metrics["cache_hits"] == 1
        assert metrics["cache_refreshes"] == 1
        assert metrics["errors_by_type"]["UpstreamError"] == 1

    def test_get_metrics_returns_copy(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_error("Timeout")

        metrics = logger.get_metrics()
        metrics["errors_by_type"]["Timeout"] = 99

        assert logger.metrics["errors_by_type"]["Timeout"] == 1

    def test_metrics_summary(self, tmp_path):
        """Metrics summary should log without errors."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        logger.record_api_call()
        logger.record_page_success()
        logger.record_page_failure("Timeout")

        logger.log_metrics_summary()

    def test_log_file_created(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
            enable_file=True,
        )

        logger.info("Test message")

        log_files = list(tmp_path.glob("jobproxy_*.log"))
        assert len(log_files) == 1

    def test_no_file_handler_when_disabled(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False, enable_file=False)

        logger.info("Test message")

        assert list(tmp_path.glob("*.log")) == []

    def test_configure_rebuilds_handlers_and_keeps_metrics(self, tmp_path):
        logger = StructuredLogger(name="test_configure", level="INFO", enable_file=False)
        logger.record_api_call()

        logger.configure(level="debug", log_dir=tmp_path, enable_file=True, enable_console=False)
        logger.info("after configure")

        assert logger.logger.level == logging.DEBUG
        assert [type(h) for h in logger.logger.handlers] == [logging.FileHandler]
        assert len(list(tmp_path.glob("jobproxy_*.log"))) == 1
        assert logger.get_metrics()["api_calls"] == 1

        logger.configure(enable_file=False, enable_console=False)
        assert logger.logger.handlers == []


class TestGlobalLogger:
    """Test global logger singleton."""

    @pytest.fixture(autouse=True)
    def _restore(self):
        import jobproxy.logger as logger_module
        saved = logger_module._global_logger
        yield
        logger_module._global_logger = saved

    def test_get_logger_returns_same_instance(self):
        """get_logger should return the same instance."""
        reset_logger()

        logger1 = get_logger(name="jobproxy_global_test", enable_file=False)
        logger2 = get_logger()

        assert logger1 is logger2

    def test_reset_logger(self):
        """reset_logger should clear global instance."""
        reset_logger()
        logger1 = get_logger(name="jobproxy_global_test", enable_file=False)

        reset_logger()
        logger2 = get_logger(name="jobproxy_global_test", enable_file=False)

        assert logger1 is not logger2

    def test_file_output_follows_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JOBPROXY_LOG_TO_FILE", "1")
        monkeypatch.setenv("JOBPROXY_LOG_DIR", str(tmp_path))
        reset_logger()

        get_logger(name="jobproxy_global_test").info("hello")

        assert len(list(tmp_path.glob("jobproxy_*.log"))) == 1
