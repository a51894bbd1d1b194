"""
Structured logging configuration for pkgpush.

Emits one JSON object per event so release runs can be audited from CI logs.
Records go to stderr; stdout is reserved for progress text.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import sanitize_message

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, str):
                value = sanitize_message(value)
            log_entry[key] = value

        return json.dumps(log_entry, default=str)


class ReleaseLogger:
    """Structured logger for one pipeline component."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"pkgpush.{name}")
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def set_run_context(
        self,
        run_id: Optional[str] = None,
        root: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> None:
        self.run_context = {}
        if run_id:
            self.run_context["run_id"] = run_id
        if root:
            self.run_context["root"] = root
        if prefix:
            self.run_context["prefix"] = prefix

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


_discovery_logger = ReleaseLogger("discovery")
_release_logger = ReleaseLogger("release")
_tools_logger = ReleaseLogger("tools")

_ALL_LOGGERS = (_discovery_logger, _release_logger, _tools_logger)


def set_run_context(
    run_id: Optional[str] = None,
    root: Optional[str] = None,
    prefix: Optional[str] = None,
) -> None:
    """Set run context on every component logger."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(run_id, root, prefix)


def clear_run_context() -> None:
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def log_run_start(run_id: str, root: str, prefix: str, **options) -> None:
    """Log run start event."""
    set_run_context(run_id, root, prefix)
    _release_logger.info("run_started", **options)


def log_run_complete(
    run_id: str,
    duration_ms: int,
    released: int,
    duplicates: int,
    unresolvable: int,
) -> None:
    """Log run completion event and drop the run context."""
    _release_logger.info(
        "run_completed",
        run_duration_ms=duration_ms,
        released=released,
        skipped_duplicate=duplicates,
        skipped_unresolvable=unresolvable,
    )
    clear_run_context()


def log_package_released(
    package_name: str,
    version: str,
    archive: str,
    uploaded: bool = False,
    published: bool = False,
) -> None:
    _release_logger.info(
        "package_released",
        package_name=package_name,
        version=version,
        archive=archive,
        uploaded=uploaded,
        published=published,
    )


def log_package_skipped(package_name: str, reason: str, **kwargs) -> None:
    _release_logger.debug(
        "package_skipped", package_name=package_name, reason=reason, **kwargs
    )


def log_manifest_rewritten(manifest_path: str, removed: str) -> None:
    _release_logger.info(
        "manifest_rewritten", manifest_path=manifest_path, removed=removed
    )


def log_manifest_found(manifest_path: str) -> None:
    _discovery_logger.debug("manifest_found", manifest_path=manifest_path)


def log_tool_invoked(command: str, duration_ms: int, returncode: int) -> None:
    _tools_logger.debug(
        "tool_invoked", command=command, duration_ms=duration_ms, returncode=returncode
    )


def log_tool_failed(command: str, returncode: Optional[int], stderr: str) -> None:
    _tools_logger.error(
        "tool_failed", command=command, returncode=returncode, stderr=stderr[-2000:]
    )


def configure_logging(
    log_level: str = "WARNING",
    log_file: Optional[str] = None,
    json_format: bool = True,
) -> None:
    """Configure level, format and an optional log file for all pkgpush loggers."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    formatter = StructuredFormatter() if json_format else logging.Formatter(_PLAIN_FORMAT)

    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        if log_file and not any(
            isinstance(h, logging.FileHandler) for h in logger.logger.handlers
        ):
            logger.logger.addHandler(logging.FileHandler(log_file, encoding="utf-8"))
        for handler in logger.logger.handlers:
            handler.setFormatter(formatter)
