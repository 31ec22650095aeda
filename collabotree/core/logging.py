"""
Logging setup for the API process.

Modules log through ``logging.getLogger(__name__)``; this only installs the
root handler and level once at startup.
"""

from __future__ import annotations

import logging
import sys

from collabotree.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the root logger.

    Safe to call more than once; subsequent calls only adjust the level.
    """
    global _configured

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # SQL statements are controlled by ``sql_echo``, not the root level
    if not settings.sql_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
