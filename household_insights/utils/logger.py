"""
Logging configuration
"""
from loguru import logger
import sys
from pathlib import Path
from typing import Optional
from household_insights.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logger(log_dir: Optional[str] = None, level: Optional[str] = None):
    """
    Route engine logs to the console and to daily files under log_dir

    Insight cycles and cache housekeeping log at INFO; generator and record
    store failures at ERROR also land in a separate errors file.
    """
    log_path = Path(log_dir or settings.log_dir)
    level = level or settings.log_level

    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=level)

    logger.add(
        str(log_path / "household_insights_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level=level
    )

    logger.add(
        str(log_path / "errors_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return logger


# Initialize logger
log = setup_logger()
