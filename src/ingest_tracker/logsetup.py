import sys

from loguru import logger


def configure_logging(level: str = "INFO", *, debug: bool = False) -> None:
    """Route loguru output to stderr at ``level`` (DEBUG when ``debug``)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if debug else level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function} - {message}",
    )
