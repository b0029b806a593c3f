"""
Structured logging setup using structlog.

Events are snake_case names with key/value context. Console output is
coloured only on a terminal; ``LOG_JSON`` switches to one JSON object per
line. The ``drift`` command logs to stderr so stdout carries only its report.
"""
import logging
import sys
from typing import Optional, TextIO

import structlog

# HTTP clients log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def _renderer(json_output: bool, stream: TextIO) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=stream.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure stdlib logging and structlog once per process.

    Args:
        level: Log level name; unknown names fall back to INFO.
        json_output: Render JSON instead of console lines.
        log_file: Also append to this file.
        stream: Console stream, stdout by default.
    """
    stream = stream or sys.stdout
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    # force: a repeated call replaces the handlers
    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(json_output, stream))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
