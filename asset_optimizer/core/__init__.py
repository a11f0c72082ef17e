from .config import settings
from .database import SessionLocal, enable_sqlite_savepoints, engine, get_sync_session
from .logging import logger, setup_logging

__all__ = [
    "SessionLocal",
    "enable_sqlite_savepoints",
    "engine",
    "get_sync_session",
    "logger",
    "settings",
    "setup_logging",
]
