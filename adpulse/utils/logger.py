"""
Logging configuration

Console output always; when ``log_dir`` is set, a daily request/refresh log
and a longer-lived error log are written under it.
"""
from pathlib import Path
from typing import Optional
import sys

from loguru import logger

from adpulse.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logger(settings: Optional[Settings] = None):
    """(Re)configure the shared loguru logger from settings"""
    settings = settings or get_settings()
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if settings.log_dir:
        log_dir = Path(settings.log_dir)

        # Refreshes run a few times a day; a month of daily files is plenty
        logger.add(
            str(log_dir / "adpulse_{time:YYYY-MM-DD}.log"),
            rotation="00:00",
            retention="30 days",
            compression="zip",
            level="INFO",
        )

        # Cache corruption and connector failures stay around for a quarter
        logger.add(
            str(log_dir / "errors_{time:YYYY-MM-DD}.log"),
            rotation="00:00",
            retention="90 days",
            level="WARNING",
            backtrace=True,
            diagnose=settings.debug,
        )

    return logger


log = setup_logger()
