"""Logging setup shared by the CLI and scripts."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with the terse CLI format.

    Round and session traffic from ``keybatch.domain`` is logged at DEBUG; pass
    ``level=logging.DEBUG`` to see every key as it is scheduled. Pass
    ``force=True`` to reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
