"""
Structured logging system for the job proxy.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring upstream and cache health.
"""

import json
import logging
import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for upstream calls, token churn and cache behaviour.
    """

    def __init__(
        self,
        name: str = "jobproxy",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)

        # Page fetches run on worker threads
        self._metrics_lock = threading.Lock()
        self.metrics = {
            "api_calls": 0,
            "auth_attempts": 0,
            "token_refreshes": 0,
            "pages_fetched": 0,
            "pages_failed": 0,
            "cache_hits": 0,
            "cache_refreshes": 0,
            "errors_by_type": {},
        }
        self.configure(level, log_dir, enable_file, enable_console)

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        (Re)build the handlers. Metrics are kept.

        Module-level loggers are created at import time, before .env is
        read, so the CLI calls this again once settings are loaded.
        """
        self.logger.setLevel(getattr(logging, level.upper()))
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)  # stdout carries command output
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"jobproxy_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, /, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, /, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, /, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, /, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def _incr(self, key: str):
        with self._metrics_lock:
            self.metrics[key] += 1

    def record_api_call(self):
        """Increment upstream API call counter."""
        self._incr("api_calls")

    def record_auth_attempt(self):
        """Record a full login against the upstream."""
        self._incr("auth_attempts")

    def record_token_refresh(self):
        """Record an access-token refresh attempt."""
        self._incr("token_refreshes")

    def record_page_success(self):
        """Record a successfully fetched listing page."""
        self._incr("pages_fetched")

    def record_page_failure(self, error_type: str):
        """Record a listing page that failed and was dropped."""
        self._incr("pages_failed")
        self.record_error(error_type)

    def record_cache_hit(self):
        """Record a read served from a fresh snapshot."""
        self._incr("cache_hits")

    def record_cache_refresh(self):
        """Record a published snapshot."""
        self._incr("cache_refreshes")

    def record_error(self, error_type: str):
        """Track an error by type."""
        with self._metrics_lock:
            errors = self.metrics["errors_by_type"]
            errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return a copy of the current metrics."""
        with self._metrics_lock:
            metrics_copy = dict(self.metrics)
            metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])

        attempted = metrics_copy["pages_fetched"] + metrics_copy["pages_failed"]
        if attempted > 0:
            metrics_copy["page_success_rate"] = round(
                metrics_copy["pages_fetched"] / attempted, 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total_pages = metrics["pages_fetched"] + metrics["pages_failed"]
        page_rate = 0
        if total_pages > 0:
            page_rate = round(metrics["pages_fetched"] / total_pages * 100, 1)

        self.info("=== Job Proxy Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(f"Logins: {metrics['auth_attempts']}, Token refreshes: {metrics['token_refreshes']}")
        self.info(f"Pages: {metrics['pages_fetched']}/{total_pages} ({page_rate}% success)")
        self.info(f"Cache: {metrics['cache_hits']} hits, {metrics['cache_refreshes']} refreshes")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "jobproxy",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Defaults for level and file output come from JOBPROXY_LOG_LEVEL,
    JOBPROXY_LOG_DIR and JOBPROXY_LOG_TO_FILE when not passed in.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if level is None:
            level = os.environ.get("JOBPROXY_LOG_LEVEL", "INFO")
        kwargs.setdefault("log_dir", Path(os.environ.get("JOBPROXY_LOG_DIR", "logs")))
        kwargs.setdefault(
            "enable_file",
            os.environ.get("JOBPROXY_LOG_TO_FILE", "1").lower() not in ("0", "false", "no", "off"),
        )
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
