"""Log output for the hostform CLI, rendered through rich on stderr."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(
    *, level: int = logging.WARNING, console: Console | None = None, force: bool = False
) -> None:
    """Route the root logger to a RichHandler writing to *console* (stderr by default).

    Reports go to stdout, so log lines never mix into a report piped to a file.
    Pass ``force=True`` to replace handlers installed by an earlier call.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        log_time_format="%H:%M:%S",
    )
    logging.basicConfig(level=level, format="[%(name)s] %(message)s", handlers=[handler], force=force)


def verbosity_to_level(verbose: int) -> int:
    """Map a repeated ``-v`` count to a logging level."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING
