"""Structured logging for projectfacts runs.

The package only emits through ``structlog.get_logger("projectfacts.engine")``;
hosts call :func:`setup_logging` once to decide level, format and stream.
While a run is in progress every event carries the ``run_id``, ``target``
and current ``phase`` bound by :func:`run_context` / :func:`bind_phase`.
"""

from __future__ import annotations

import logging
import logging.config
import os
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

LOG_FORMATS = ("console", "json")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def setup_logging(level: str | None = None, fmt: str | None = None, *, stream: str = "stderr") -> None:
    """Configure structlog and stdlib logging for a host process.

    Arguments left as ``None`` fall back to ``PROJECTFACTS_LOG_LEVEL``
    (default INFO) and ``PROJECTFACTS_LOG_FORMAT`` (``console`` | ``json``).
    Logs go to stderr by default so a bundle written to stdout stays clean.
    """
    log_level = (level or os.environ.get("PROJECTFACTS_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.environ.get("PROJECTFACTS_LOG_FORMAT", "console")).lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"log format must be one of {LOG_FORMATS}, got {log_format!r}")
    if stream not in ("stderr", "stdout"):
        raise ValueError(f"stream must be 'stderr' or 'stdout', got {stream!r}")

    shared = _shared_processors()
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": f"ext://sys.{stream}",
                    "formatter": "structlog",
                },
            },
            "root": {"handlers": ["default"], "level": "WARNING"},
            "loggers": {
                # retries and rate-limit waits are logged here, not by httpx
                "projectfacts": {"level": log_level},
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
        }
    )


@contextmanager
def run_context(target: str, run_id: str | None = None) -> Iterator[str]:
    """Bind ``run_id`` and ``target`` to every log event inside the block."""
    run_id = run_id or uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(run_id=run_id, target=target):
        try:
            yield run_id
        finally:
            structlog.contextvars.unbind_contextvars("phase")


def bind_phase(phase: str) -> None:
    """Tag subsequent events of the current run with *phase*."""
    structlog.contextvars.bind_contextvars(phase=phase)
