"""
logging_config.py — Loguru setup for tenderlink

Loguru is the single logging backend. Services log through stdlib
getLogger("tenderlink.<area>"); an intercept handler forwards those
records to Loguru so every line shares one format and one sink.

Business Rules:
- JSON lines on stdout in production, colored lines in development
- Every line carries the request id bound by the request middleware,
  "-" outside a request (startup, CLI, tests)
- SQLAlchemy engine echo and multipart parser chatter stay at WARNING

Called by: tenderlink/main.py (lifespan)
Depends on: tenderlink/config.py
"""

import logging
import sys

from loguru import logger

from .config import settings

DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "multipart")


def setup_logging(level: str | None = None, environment: str | None = None) -> None:
    """Replace Loguru's default sink and route stdlib logging into it.

    level/environment default to LOG_LEVEL / ENVIRONMENT from settings.
    """
    log_level = (level or settings.log_level).upper()
    is_production = (environment or settings.environment).lower() == "production"

    logger.remove()
    logger.configure(extra={"request_id": "-"})
    if is_production:
        logger.add(sys.stdout, level=log_level, format="{message}", serialize=True)
    else:
        logger.add(sys.stdout, level=log_level, format=DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={log_level} production={is_production}")


class _InterceptHandler(logging.Handler):
    """Forward stdlib logging records to Loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
