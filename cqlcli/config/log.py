"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr through rich. DEBUG when verbose."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # The driver logs every connection attempt at INFO and above.
    logging.getLogger("cassandra").setLevel(
        logging.INFO if verbose else logging.ERROR
    )
