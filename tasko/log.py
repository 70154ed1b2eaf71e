"""Logging setup for Tasko."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(debug: bool = False) -> None:
    """
    Send the 'tasko' loggers to stderr through rich.

    Args:
        debug: Log requests and session changes too, not only warnings
    """
    logger = logging.getLogger("tasko")
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)

    # Calling this twice (e.g. from tests) must not duplicate output
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(console=Console(stderr=True), show_path=debug, rich_tracebacks=debug)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
