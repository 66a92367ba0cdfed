"""Logging setup for the command line."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None, console: Optional[Console] = None) -> None:
    """Route ``httpxfer`` loggers to a rich console handler and an optional file."""
    config = config or LoggingConfig()
    level = getattr(logging, config.level.upper(), logging.INFO)

    logger = logging.getLogger("httpxfer")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(RichHandler(console=console or Console(stderr=True), show_path=False))

    if config.file:
        file_handler = logging.FileHandler(config.file, encoding='utf-8')
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    logger.propagate = False
