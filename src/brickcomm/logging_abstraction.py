"""Logging layer for brickcomm.

All brickcomm loggers hang off the ``brickcomm`` package logger, which owns
the handlers: JSON lines to a file, human-readable lines to a stream, or
both. Module code logs through a LinkLogger, which carries bound link context
(transport, session id, ...) and merges it with per-call ``extra=`` context.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import override

from brickcomm.correlation import get_correlation_id

__all__ = [
    "PACKAGE_LOGGER",
    "HumanReadableFormatter",
    "JSONFormatter",
    "LinkLogger",
    "configure_logging",
    "get_logger",
    "set_package_level",
]

PACKAGE_LOGGER = "brickcomm"
CONTEXT_ATTR = "link_context"

_configured = {"done": False}


def _record_context(record: logging.LogRecord) -> Mapping[str, object]:
    context = getattr(record, CONTEXT_ATTR, None)
    return context if isinstance(context, Mapping) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, link context under ``context``."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = dict(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line text with a short correlation tag and key=value context."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s %(correlation_tag)s %(message)s%(context_suffix)s",
            datefmt="%H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        # Last 8 chars: UUIDv7 prefixes are timestamps and collide within a run
        record.correlation_tag = f"[{correlation_id[-8:]}]" if correlation_id else "[--------]"
        context = _record_context(record)
        record.context_suffix = "".join(f" {k}={v}" for k, v in context.items())
        return super().format(record)


def _stream_or_file(target: str) -> logging.Handler:
    if target == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _build_handlers(log_format: str, json_file: str | Path | None, human_output: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if log_format in ("json", "both") and json_file:
        try:
            json_handler = _stream_or_file(str(json_file))
        except OSError as e:
            print(f"Warning: cannot open JSON log file {json_file}: {e}", file=sys.stderr)
        else:
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)
    if log_format in ("human", "both") or not handlers:
        try:
            human_handler = _stream_or_file(human_output)
        except OSError as e:
            print(f"Warning: cannot open log file {human_output}: {e}", file=sys.stderr)
            human_handler = logging.StreamHandler(sys.stderr)
        human_handler.setFormatter(HumanReadableFormatter())
        handlers.append(human_handler)
    return handlers


def configure_logging(
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
    level: int | None = None,
) -> logging.Logger:
    """(Re)install the package handlers from arguments or BRICKCOMM_* settings.

    Safe to call again after the configuration changed: previous handlers
    are closed and replaced.
    """
    from brickcomm import const  # noqa: PLC0415

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    handlers = _build_handlers(
        log_format or const.BRICKCOMM_LOG_FORMAT,
        json_file or const.BRICKCOMM_LOG_JSON_FILE,
        human_output or const.BRICKCOMM_LOG_HUMAN_OUTPUT,
    )
    for handler in handlers:
        package_logger.addHandler(handler)

    if level is None:
        level = logging.DEBUG if const.BRICKCOMM_DEBUG else logging.INFO
    set_package_level(level)
    _configured["done"] = True
    return package_logger


def set_package_level(level: int) -> None:
    """Set the level of the package logger and its handlers."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in package_logger.handlers:
        handler.setLevel(level)


class LinkLogger:
    """Logger carrying bound link context.

    Example:
        log = get_logger(__name__).bind(transport="radio")
        log.info("connected to %s", peer, extra={"attempt": 2})
        # context: transport=radio attempt=2
    """

    def __init__(self, name: str, context: Mapping[str, object] | None = None) -> None:
        self.name = name
        self.logger = logging.getLogger(name)
        self.context: dict[str, object] = dict(context or {})

    def bind(self, **context: object) -> LinkLogger:
        """Return a logger whose records also carry ``context``."""
        return LinkLogger(self.name, {**self.context, **context})

    def _log(
        self,
        level: int,
        msg: str,
        args: tuple[object, ...],
        extra: Mapping[str, object] | None,
        exc_info: bool = False,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        context = {**self.context, **extra} if extra else self.context
        # stacklevel=3: record the caller of debug()/info()/..., not this wrapper
        self.logger.log(
            level,
            msg,
            *args,
            extra={CONTEXT_ATTR: context} if context else None,
            exc_info=exc_info,
            stacklevel=3,
        )

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, args, extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, args, extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, args, extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, args, extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, args, extra, exc_info=True)


def get_logger(name: str, **context: object) -> LinkLogger:
    """Return a LinkLogger, installing the package handlers on first use."""
    if not _configured["done"]:
        configure_logging()
    return LinkLogger(name, context)
