"""Logging configuration for Venice Companion."""
import sys
from pathlib import Path

from loguru import logger

# Records outside a turn carry this in place of a thread id
NO_THREAD = "-"


def setup_logging(level: str = "INFO", log_dir: Path = Path("./logs")):
    """Configure logging with console and file handlers.

    Turn records are bound with ``thread`` (the first eight characters of
    the thread id) so one conversation can be followed through the files.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"thread": NO_THREAD})

    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<magenta>{extra[thread]: <8}</magenta> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
    )

    logger.add(
        log_dir / "companion_{time:YYYY-MM-DD}.log",
        rotation="50 MB",
        retention="10 days",
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[thread]: <8} | {name}:{function} - {message}",
        compression="zip",
    )

    # Provider failures and swallowed persistence errors end up here
    logger.add(
        log_dir / "errors_{time:YYYY-MM-DD}.log",
        rotation="10 MB",
        retention="30 days",
        level="WARNING",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[thread]: <8} | {name}:{function}:{line} - {message}",
        backtrace=True,
        diagnose=False,
    )

    logger.info(f"Logging configured with level: {level}")
