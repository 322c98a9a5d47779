"""
Logging helpers for ddb-foundry.

Every module logs through a child of the ``ddb-foundry`` logger so the whole
importer can be silenced or raised to DEBUG in one place.
"""

import logging

logger = logging.getLogger("ddb-foundry")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(component: str) -> logging.Logger:
    """Return the child logger for one importer component (e.g. ``"spells"``)."""
    return logger.getChild(component)


def configure_logging(level: str | int = logging.INFO) -> None:
    """Configure root logging for command-line and server use.

    Args:
        level: Logging level name (``"DEBUG"``) or numeric level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)
