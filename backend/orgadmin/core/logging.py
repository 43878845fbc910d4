"""
logging.py — Application-Wide Logging Configuration

Purpose:
- One format for every orgadmin logger: timestamp | level | module | message
- Pin the levels of the libraries underneath us so LOG_LEVEL=DEBUG shows our
  own detail without drowning in driver and pool chatter.

Where log lines come from:
- orgadmin.db.backends        backend selection, translated SQLite SQL (DEBUG)
- orgadmin.db.executor        failed statements and rolled-back transactions
- orgadmin.core.database      start-up: disabled mode, schema/ping failures
- orgadmin.core.security      admin login misconfiguration, rejected API keys
- orgadmin.repositories.*     writes (create, delete, headquarters moves, key issue)
- orgadmin.services.tree      rows skipped or flags that disagree between rows
- orgadmin.main               unhandled request errors, health ping, shutdown

Request-level usage (who called what, status, timing) is not logged here;
it goes to the API_Logs table via the middleware in main.py.
"""

import logging
from typing import Dict

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Library loggers held at a fixed level whatever LOG_LEVEL says.
# sqlalchemy.engine would echo every statement a second time; the pool logs
# each checkout at DEBUG.
LIBRARY_LOG_LEVELS: Dict[str, int] = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "passlib": logging.ERROR,
}

# -----------------------------------------------------------------------------
# Root Logger Initialization
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging from settings.LOG_LEVEL.

    Unknown level names fall back to INFO. Output goes to stderr, where
    uvicorn picks it up. main.create_app calls this once per app.
    """
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    # basicConfig is a no-op once handlers exist (tests, uvicorn reload).
    logging.getLogger().setLevel(resolved)

    for name, library_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).info("Logging initialized with level %s", logging.getLevelName(resolved))

# -----------------------------------------------------------------------------
# Logger Access Helper
# -----------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    In any module:
        from orgadmin.core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
