"""Logging bootstrap shared by the HTTP app and the standalone job worker."""

import logging
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process."""
    resolved = (level or settings.log_level or "INFO").upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=LOG_FORMAT)
    # SQLAlchemy engine logging is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
