import logging
from typing import Optional

from library_backend.config import Settings, load_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# urllib3 logs full request URLs at DEBUG, and Steam Web API URLs carry the key.
QUIET_LOGGERS = ("urllib3",)


def configure_logging(settings: Optional[Settings] = None) -> int:
    """Sets up root logging at the configured LOG_LEVEL and returns the level used."""
    settings = settings or load_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
