"""
Centralised logging configuration - powered by **loguru**.

Usage (any module)::

    from loguru import logger
    logger.info("Hello")

Usage (entry-points - scripts, CLI)::

    from infrastructure.log import setup_logging
    setup_logging()              # defaults: INFO, stderr
    setup_logging("DEBUG")       # more verbose

Usage (inside a turn)::

    log = turn_logger(context, agent=agent.name)
    log.error("Persistence failed")   # carries user/thread/campaign/run

Every line shows the run id and agent of the turn that logged it ("-"
outside a turn). Stdlib ``logging`` records from SQLAlchemy, httpx and
LangChain are routed through loguru.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from loguru import logger

_TURN_DEFAULTS = {"user_id": "-", "thread_id": "-", "campaign_id": "-", "run_id": "-", "agent": "-"}

_FMT_CONSOLE = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[run_id]}</magenta> <blue>{extra[agent]}</blue> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_FMT_FILE = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[user_id]}:{extra[thread_id]}:{extra[campaign_id]} run={extra[run_id]} agent={extra[agent]} | "
    "{name}:{function}:{line} - {message}"
)

# Request-level chatter from HTTP clients drowns routing logs.
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


class _InterceptHandler(logging.Handler):
    """Route stdlib ``logging`` records into **loguru**."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    *,
    intercept_stdlib: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure loguru for the current process.

    Call this **once** at your entry-point.

    Args:
        level: Minimum log level (``DEBUG``, ``INFO``, ``WARNING``, …).
        intercept_stdlib: Route stdlib ``logging`` through loguru.
        log_file: Optional rotating log file carrying the full turn
                  identity on every line.
    """
    logger.remove()
    logger.configure(extra=_TURN_DEFAULTS)

    logger.add(
        sys.stderr,
        format=_FMT_CONSOLE,
        level=level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            format=_FMT_FILE,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            compression="gz",
            enqueue=True,
        )

    if intercept_stdlib:
        logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Loguru configured - level={}", level)


def turn_logger(context: Any, **extra: Any):
    """
    Return a logger bound to the composite identity of one turn.

    ``context`` is any object exposing ``user_id``, ``thread_id``,
    ``campaign_id`` and ``run_id`` (a ``RequestContext``); missing
    values fall back to "-".
    """
    identity = {
        key: getattr(context, key, None) or default
        for key, default in _TURN_DEFAULTS.items()
        if key != "agent"
    }
    identity["agent"] = extra.pop("agent", None) or "-"
    return logger.bind(**identity, **extra)
