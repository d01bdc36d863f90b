"""Logging setup for the command-line entry points."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with a terse CLI format.

    Pass ``force=True`` to reconfigure during tests or when the verbosity is
    only known after argument parsing.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    # per-request lines from the HTTP stack are only useful when debugging
    if level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def level_for(*, verbose: int = 0, quiet: bool = False) -> int:
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return logging.INFO
