"""Structured logging for timeblocks.

Uses structlog's ProcessorFormatter to upgrade every existing
``logging.getLogger(__name__)`` call site; nothing changes at call sites.

Two output formats:
- ``text``: colored, human-readable console output (dev default)
- ``json``: machine-parseable JSON lines

The calendar name is injected into every record from a ContextVar.

Log directory layout (when ``log_root`` is set)::

    logs/
      timeblocks/       # Engine logs (JSON)
        time-card.log
      transport/        # httpx/httpcore logs (JSON)
        time-card.log
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog

_calendar_context: ContextVar[str | None] = ContextVar("calendar_name", default=None)


def set_calendar_context(name: str) -> None:
    """Set the calendar name for the current async context."""
    _calendar_context.set(name)


def get_calendar_context() -> str | None:
    return _calendar_context.get()


def add_calendar_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject the ``calendar`` key from the ContextVar into the event dict."""
    event_dict["calendar"] = _calendar_context.get()
    return event_dict


_NOISE_LOGGERS = (
    "httpx",
    "httpcore",
)

_DIR_ENGINE = "timeblocks"
_DIR_TRANSPORT = "transport"


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    """Build the pre-chain processor list with the given timestamp format."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_calendar_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _make_file_handler(path: Path, processors: list) -> logging.FileHandler:
    """Create a JSON file handler at *path*."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=processors,
    )
    handler = logging.FileHandler(path)
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
    calendar_name: str | None = None,
) -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        ``"text"`` for colored console output, ``"json"`` for JSON lines.
    log_root:
        Root directory for JSON log files, see the module docstring.
    calendar_name:
        Calendar identity, stored in the ContextVar and used for file naming.
    """
    if calendar_name:
        set_calendar_context(calendar_name)

    if fmt == "json":
        console_processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        console_processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=console_processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    # Drop previous handlers so reconfiguration does not duplicate output.
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_root = Path(log_root)
        file_processors = _build_processors(time_fmt="iso")
        log_name = calendar_name or "timeblocks"

        for subdir in (_DIR_ENGINE, _DIR_TRANSPORT):
            (log_root / subdir).mkdir(parents=True, exist_ok=True)

        root.addHandler(
            _make_file_handler(log_root / _DIR_ENGINE / f"{log_name}.log", file_processors)
        )

        transport_handler = _make_file_handler(
            log_root / _DIR_TRANSPORT / f"{log_name}.log",
            file_processors,
        )
        for name in _NOISE_LOGGERS:
            logging.getLogger(name).addHandler(transport_handler)

    structlog.configure(
        processors=[
            *console_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
