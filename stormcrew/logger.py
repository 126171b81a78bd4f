"""
Structured logging for stormcrew.

One process-wide logger writes "message | Context: {json}" lines to the
console and, when a log directory is configured, to a daily file. It also
keeps counters for matching, merge and session rotation activity.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(log_dir: Path) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"stormcrew_{datetime.now().strftime('%Y%m%d')}.log"
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(logging.DEBUG)  # file gets everything
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _bump(counter: Dict[str, int], key: str, by: int = 1) -> None:
    counter[key] = counter.get(key, 0) + by


class StructuredLogger:
    """
    Logger with JSON context and activity counters.

    Counters cover resolver runs per deciding strategy, ambiguous skips,
    merge outcomes, re-pointed rows, session rotations and errors by type.
    """

    def __init__(
        self,
        name: str = "stormcrew",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the underlying logging.Logger
            level: Console threshold (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Where daily log files go (default: logs/)
            enable_file: Attach the file handler
            enable_console: Attach the stdout handler
        """
        self.logger = logging.getLogger(name)
        self.configure(level, log_dir, enable_file, enable_console)

        self.metrics = {
            "match_attempts": 0,
            "matches_by_strategy": {},
            "ambiguous_skips": {},
            "merges_attempted": 0,
            "merges_successful": 0,
            "merges_failed": 0,
            "rows_repointed": 0,
            "session_rotations": 0,
            "errors_by_type": {},
        }

    def configure(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """Replace level and handlers in place. Counters are kept."""
        numeric_level = getattr(logging, level.upper())
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.setLevel(numeric_level)

        if enable_console:
            self.logger.addHandler(_console_handler(numeric_level))
        if enable_file:
            self.logger.addHandler(_file_handler(Path(log_dir) if log_dir else Path("logs")))

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, **context):
        self._log(logging.ERROR, message, context)

    def critical(self, message: str, **context):
        self._log(logging.CRITICAL, message, context)

    # Counters

    def record_match(self, strategy: str):
        """Count one resolver run under the strategy that decided it ("none" included)."""
        self.metrics["match_attempts"] += 1
        _bump(self.metrics["matches_by_strategy"], strategy)

    def record_ambiguous(self, strategy: str):
        _bump(self.metrics["ambiguous_skips"], strategy)

    def record_merge_attempt(self):
        self.metrics["merges_attempted"] += 1

    def record_merge_success(self, rows_repointed: int):
        self.metrics["merges_successful"] += 1
        self.metrics["rows_repointed"] += rows_repointed

    def record_merge_failure(self, error_type: str):
        self.metrics["merges_failed"] += 1
        self.record_error(error_type)

    def record_rotation(self):
        self.metrics["session_rotations"] += 1

    def record_error(self, error_type: str):
        _bump(self.metrics["errors_by_type"], error_type)

    def get_metrics(self) -> dict:
        """Snapshot of the counters, plus merge_success_rate once a merge was attempted."""
        snapshot = dict(self.metrics)
        if snapshot["merges_attempted"]:
            snapshot["merge_success_rate"] = round(
                snapshot["merges_successful"] / snapshot["merges_attempted"], 3
            )
        return snapshot

    def log_metrics_summary(self):
        metrics = self.get_metrics()

        self.info("=== Identity & Session Metrics ===")
        self.info(f"Match attempts: {metrics['match_attempts']}")
        for title, key in (
            ("Matches by strategy", "matches_by_strategy"),
            ("Ambiguous skips", "ambiguous_skips"),
        ):
            if metrics[key]:
                self.info(f"{title}:")
                for strategy, count in metrics[key].items():
                    self.info(f"  {strategy}: {count}")

        self.info(
            f"Merges: {metrics['merges_successful']}/{metrics['merges_attempted']} "
            f"({metrics['rows_repointed']} rows re-pointed)"
        )
        self.info(f"Session rotations: {metrics['session_rotations']}")

        if metrics["errors_by_type"]:
            self.info("Errors by type:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "stormcrew",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    Unless overridden, the level comes from STORMCREW_LOG_LEVEL and file
    output is enabled only when STORMCREW_LOG_DIR is set. Arguments are
    ignored once the logger exists.
    """
    global _global_logger

    if _global_logger is None:
        from .env import Settings

        settings = Settings.from_env()
        kwargs.setdefault("log_dir", settings.log_dir)
        kwargs.setdefault("enable_file", settings.log_dir is not None)
        _global_logger = StructuredLogger(name=name, level=level or settings.log_level, **kwargs)

    return _global_logger


def configure_logger_from_env() -> StructuredLogger:
    """
    Apply STORMCREW_LOG_LEVEL and STORMCREW_LOG_DIR to the process-wide logger.

    Modules bind the logger at import time, so call this after load_env() to
    make .env values take effect on that same instance.
    """
    from .env import Settings

    settings = Settings.from_env()
    logger = get_logger()
    logger.configure(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_dir is not None,
    )
    return logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger() builds a fresh one."""
    global _global_logger
    _global_logger = None
