"""Logging setup shared by the API and background autosave tasks."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once; later calls only adjust the level."""
    global _configured
    if not _configured:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        _configured = True
    logging.getLogger().setLevel(level)
