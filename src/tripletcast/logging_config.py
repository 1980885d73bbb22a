"""Logging setup for tripletcast command-line runs.

``configure_logging()`` is called once by the CLI before a sub-command
runs. Library modules only create module loggers and never add handlers.

The console shows ``level`` and above. When ``log_dir`` is writable, a
file handler records everything down to DEBUG, which includes the
per-step evidence fallbacks logged by the backtester.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "tripletcast.log"


def configure_logging(level: int = logging.INFO, log_dir: Optional[str] = "logs") -> None:
    """Attach console and file handlers to the root logger.

    Does nothing if the root logger already has handlers.

    Args:
        level: Console log level
        log_dir: Directory for tripletcast.log (None disables the file)
    """
    root = logging.getLogger()
    if root.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)
    root_level = level

    if log_dir is not None:
        try:
            os.makedirs(log_dir, exist_ok=True)
            fh = logging.FileHandler(os.path.join(log_dir, LOG_FILENAME), mode="a")
        except OSError:
            fh = None
        if fh is not None:
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(formatter)
            root.addHandler(fh)
            root_level = logging.DEBUG

    root.setLevel(root_level)
