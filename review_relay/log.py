"""Logging setup for the CLI and the MCP server."""

import logging
import tempfile
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# stdout belongs to the MCP protocol, so everything human-facing goes to stderr
stderr_console = Console(stderr=True)

LOG_FILE = Path(tempfile.gettempdir()) / "review-relay.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(debug: bool = False, log_file: Optional[Path] = LOG_FILE) -> logging.Logger:
    """Configure the package logger.

    Args:
        debug: Show DEBUG records on the console (otherwise WARNING and up)
        log_file: File that receives every record; None disables it

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("review_relay")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=stderr_console,
        show_path=False,
        rich_tracebacks=debug,
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.addHandler(console_handler)

    if log_file is not None:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)

    return logger
