"""Logging setup for the monox CLI: structlog events rendered through stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

# Third-party loggers held at a fixed level whatever MONOX_LOG_LEVEL says.
_QUIET_LOGGERS = {"asyncio": "WARNING"}


def _resolve_level(verbose: bool) -> str:
    if "MONOX_LOG_LEVEL" in os.environ:
        return os.environ["MONOX_LOG_LEVEL"].upper()
    return "INFO" if verbose else "WARNING"


def setup_logging(*, verbose: bool = False, colored: bool = True) -> None:
    """Route structlog and stdlib records to one stderr handler.

    ``MONOX_LOG_LEVEL`` wins when set. Otherwise ``-v`` lowers the level
    from WARNING to INFO, which is what surfaces the per-task and per-stage
    events. ``MONOX_LOG_FORMAT=json`` swaps the console renderer for JSON
    lines; *colored* only affects the console renderer.
    """
    level = _resolve_level(verbose)
    fmt = os.environ.get("MONOX_LOG_FORMAT", "console").lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=colored)
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    loggers = {"monox": {"level": level}}
    loggers.update({name: {"level": lvl} for name, lvl in _QUIET_LOGGERS.items()})

    # stdout carries command output (tables, JSON), so logs go to stderr.
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "monox": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "monox",
                },
            },
            "root": {"handlers": ["stderr"], "level": level},
            "loggers": loggers,
        }
    )
