"""
utils/logging.py — structlog setup shared by the CLI, the sync job and the services.

Log lines go to stderr so CLI command output on stdout stays clean for
scripts. settings.log_format picks the renderer: "json" for deployed jobs,
"console" for terminals.

Usage:
    from nrega_pipeline.utils.logging import configure_logging, get_logger

    configure_logging(log_level="DEBUG")
    log = get_logger(__name__, pipeline="district_sync")
    log.info("district_synced", district_code="3101", financial_year="2024-2025")

    bind_run_context(sync_run_id=run.id)   # added to every line until cleared
    ...
    clear_run_context()
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from nrega_shared.config import settings


def _level(name: str) -> int:
    value = getattr(logging, name.upper(), logging.INFO)
    return value if isinstance(value, int) else logging.INFO


def _processors(fmt: str, stream: TextIO) -> list[Any]:
    chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        chain.append(structlog.processors.JSONRenderer())
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))
    return chain


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    *,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structlog (and stdlib logging for httpx) once per process.

    Args:
        log_level:  Overrides settings.log_level.
        log_format: Overrides settings.log_format ("json" | "console").
        stream:     Destination (default: sys.stderr).
    """
    level = _level(log_level or settings.log_level)
    fmt = log_format or settings.log_format
    out = stream or sys.stderr

    logging.basicConfig(format="%(message)s", stream=out, level=level, force=True)
    # httpx logs every request at INFO; keep it to warnings
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_processors(fmt, out),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Lazy structlog logger carrying ``logger=name`` and *initial_values*.

    PrintLogger has no name of its own, so the name travels in the context.
    The proxy resolves on first use, so module-level loggers pick up a
    later configure_logging().
    """
    return structlog.get_logger(name, logger=name, **initial_values)  # type: ignore[return-value]


def bind_run_context(**values: Any) -> None:
    """Attach values (e.g. sync_run_id) to every log line on this task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
