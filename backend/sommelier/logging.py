"""structlog setup for the sommelier API.

Console rendering in development, JSON lines everywhere else. When LOG_FILE
is set every line is mirrored into that file as well.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from sommelier.config import settings

# Customer free text ends up in some events; keep lines bounded
MAX_TEXT_FIELD = 120
_TEXT_FIELDS = ("query", "reason", "error")

# SDK transport loggers are chatty at INFO
_QUIET_LIBRARIES = ("httpx", "httpcore", "anthropic")


def truncate_text_fields(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for field in _TEXT_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str) and len(value) > MAX_TEXT_FIELD:
            event_dict[field] = value[:MAX_TEXT_FIELD] + "..."
    return event_dict


class _MirroredStream:
    """stdout plus an append-only log file.

    A file that cannot be opened or written only disables the file half.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._file: IO[str] | None = None
        try:
            self._file = open(path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            # structlog is not configured yet at this point
            print(
                f"WARNING: cannot open log file {path!r} ({exc}); logging to stdout only",
                file=sys.stderr,
            )

    @property
    def mirroring(self) -> bool:
        return self._file is not None

    def _disable(self, action: str) -> None:
        self._file = None
        print(
            f"WARNING: log file {action} failed for {self.path!r}; file logging disabled",
            file=sys.stderr,
        )

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._disable("write")

    def flush(self) -> None:
        sys.stdout.flush()
        if self._file is None:
            return
        try:
            self._file.flush()
        except (OSError, ValueError):
            self._disable("flush")


def resolve_level(name: str) -> int:
    """LOG_LEVEL name to a logging level; unknown names mean INFO."""
    return logging.getLevelNamesMapping().get(name.strip().upper(), logging.INFO)


def configure_logging() -> None:
    level = resolve_level(settings.log_level)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if settings.log_file:
        logger_factory = structlog.PrintLoggerFactory(file=_MirroredStream(settings.log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            truncate_text_fields,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
