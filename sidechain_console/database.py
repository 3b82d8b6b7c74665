import logging

from sqlalchemy.exc import SQLAlchemyError

from sidechain_console.config import Base, engine
from sidechain_console.models import User

logger = logging.getLogger(__name__)

__all__ = ["DatabaseSyncError", "User", "sync_user_table"]


class DatabaseSyncError(RuntimeError):
    """Raised when the user table cannot be created or verified."""


def sync_user_table(bind=None) -> None:
    """
    Create the users table if it is absent.

    Safe to call on every start; existing tables are left untouched. There is
    no migration versioning, so concurrent schema changes are not coordinated.
    """
    bind = bind if bind is not None else engine
    try:
        Base.metadata.create_all(bind=bind, tables=[User.__table__], checkfirst=True)
    except SQLAlchemyError as exc:
        logger.exception("User table sync failed url=%s", bind.url)
        raise DatabaseSyncError(f"user table sync failed: {type(exc).__name__}") from exc
    logger.info("Users db and user table have been created")
