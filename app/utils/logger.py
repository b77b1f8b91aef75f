"""
Logging configuration
"""
from loguru import logger
import sys
from app.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logger():
    """Console sink always; daily-rotated files unless LOG_TO_FILE is off"""
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if settings.log_to_file:
        # Everything from INFO up, kept for a month
        logger.add(
            "logs/portal_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            compression="zip",
            level="INFO",
        )
        # Errors only, kept longer for incident review
        logger.add(
            "logs/portal_errors_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="90 days",
            level="ERROR",
            backtrace=True,
        )

    return logger


log = setup_logger()
