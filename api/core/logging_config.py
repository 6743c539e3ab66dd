"""
Process-wide logging setup.

Modules log through `logging.getLogger(__name__)` with `event key=value`
messages; this only installs the root handler and level.
"""

from __future__ import annotations

import logging

from . import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel(level or settings.log_level())

    # uvicorn may already have attached handlers; don't double-log.
    if root.handlers:
        return None

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
