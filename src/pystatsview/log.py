"""Logging setup for pystatsview."""

import logging

from rich.logging import RichHandler

LOG_FORMAT = "%(name)s | %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO, rich_tracebacks: bool = True) -> None:
    """Initialize rich-based logging for the dashboard process."""
    handler = RichHandler(rich_tracebacks=rich_tracebacks, markup=False)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FMT,
        handlers=[handler],
    )
