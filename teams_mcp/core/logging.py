"""Structured logging setup for teams-mcp.

All log output goes to stderr. When the MCP server is running, stdout carries
the protocol stream and must never receive log lines.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import Processor


_NOISY_LOGGERS = ("httpx", "httpcore", "mcp.server.lowlevel.server")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "INFO",
    log_file: str | Path | None = None,
) -> structlog.stdlib.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        json_logs: Render console output as JSON instead of the rich console format
        log_level_name: Minimum level name (DEBUG, INFO, ...)
        log_file: Optional path of a JSON log file written in addition to stderr

    Returns:
        A logger bound to this module
    """
    level = getattr(logging, log_level_name.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_renderer: Processor
    if json_logs:
        console_renderer = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                console_renderer,
            ],
        )
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.dict_tracebacks,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)
    logger.debug(
        "logging_configured",
        level=log_level_name.upper(),
        json_logs=json_logs,
        log_file=str(log_file) if log_file else None,
        category="config",
    )
    return logger


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Get a structlog logger, optionally bound to initial context."""
    logger = structlog.get_logger(name)
    if initial_values:
        return logger.bind(**initial_values)
    return logger
