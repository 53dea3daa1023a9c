"""Logging configuration"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from core.config import Settings

# Chatty third-party loggers; httpx logs every request URL at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _rich_handler() -> RichHandler:
    handler = RichHandler(
        console=Console(force_terminal=True, width=120),
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))
    return handler


def setup_logging(settings: Settings) -> None:
    """Configure root logging with a Rich handler, plain format as fallback"""
    level = getattr(logging, settings.log_level, logging.INFO)

    try:
        # force=True: uvicorn configures the root logger before us
        logging.basicConfig(level=level, handlers=[_rich_handler()], force=True)
    except Exception as e:
        logging.basicConfig(
            level=level, format=PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S", force=True
        )
        logging.getLogger(__name__).warning(f"Rich logging setup failed: {e}, using plain logging")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging: {settings.log_level} | Env: {settings.environment}"
    )
