import logging
import logging.config
from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "root": {"handlers": ["console"], "level": (level or settings.LOG_LEVEL).upper()},
        "loggers": {
            # httpx logs every request at INFO
            "httpx": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    })
