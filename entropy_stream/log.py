"""Logging setup for the command-line tools.

Library modules log through ``logging.getLogger(__name__)`` under the
``entropy_stream`` namespace and never print.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

logger = logging.getLogger("entropy_stream")


def configure_logging(level: str = "WARNING", console: Console | None = None) -> None:
    """Route ``entropy_stream`` logs through a rich handler on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
