"""Rich consoles and log setup shared by the volgrid CLI."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

# Rich spinners print Unicode; force UTF-8 so Windows code pages don't choke.
try:
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, OSError):
    pass

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Route the ``volgrid`` logger to stderr through Rich.

    DEBUG with ``verbose``, INFO otherwise. Calling it again replaces the
    previous handler instead of stacking another one.
    """
    logger = logging.getLogger("volgrid")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(
        RichHandler(console=err_console, show_path=False, show_time=verbose)
    )
