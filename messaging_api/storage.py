import logging
from datetime import datetime, timezone
from typing import Generator, Optional

from fastapi import Depends
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from messaging_api.config import settings
from messaging_api.errors import NotFoundError
from messaging_api.repository import Repository

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # check_same_thread=False is required for SQLite to work with FastAPI's threadpool
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    pool_pre_ping=True,
    echo=False,
)

# Objects stay readable after commit so responses can be built from them
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)

# Base class for SQLAlchemy models
Base = declarative_base()

REQUIRED_TABLES = ("contact_messages", "recipients")


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug("Initializing database")
    try:
        # Import models to register them with Base.metadata
        from messaging_api import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        inspector = inspect(engine)
        for table in REQUIRED_TABLES:
            if not inspector.has_table(table):
                logger.error(f"Database schema not applied: '{table}' table not found")
                return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLRepository(Repository):
    """
    SQLAlchemy implementation of the Repository contract.

    One instance wraps one request-scoped session. Write methods commit
    on success and roll back on failure before re-raising.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # =========================================================================
    # Contact Messages
    # =========================================================================

    def create_contact_message(self, message) -> None:
        now = _now()
        message.created_at = now
        message.updated_at = now
        if message.attempts is None:
            message.attempts = 0
        self.db.add(message)
        self._commit()
        self.db.refresh(message)
        logger.info(f"Contact message created: id={message.id}")

    def get_contact_messages(self) -> list:
        from messaging_api.models import ContactMessage

        return (
            self.db.query(ContactMessage)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .all()
        )

    def get_contact_message_by_id(self, message_id: int):
        from messaging_api.models import ContactMessage

        message = self.db.get(ContactMessage, message_id)
        if message is None:
            raise NotFoundError(f"contact message {message_id} not found")
        return message

    def update_contact_message_status(
        self,
        message_id: int,
        status: str,
        last_error: Optional[str] = None
    ) -> None:
        from messaging_api.models import ContactMessage, MessageStatus

        now = _now()
        updates = {"status": status, "updated_at": now}
        if last_error is not None:
            updates["last_error"] = last_error
        if status == MessageStatus.SENT.value:
            updates["sent_at"] = now
        if status == MessageStatus.FAILED.value:
            updates["attempts"] = ContactMessage.attempts + 1

        rows = (
            self.db.query(ContactMessage)
            .filter(ContactMessage.id == message_id)
            .update(updates)
        )
        if rows == 0:
            self.db.rollback()
            raise NotFoundError(f"contact message {message_id} not found")
        self._commit()
        logger.info(f"Contact message {message_id} status set to {status}")

    # =========================================================================
    # Recipients
    # =========================================================================

    def get_all_recipients(self) -> list:
        from messaging_api.models import Recipient

        return self.db.query(Recipient).order_by(Recipient.name.asc()).all()

    def get_active_recipients(self) -> list:
        from messaging_api.models import Recipient

        return (
            self.db.query(Recipient)
            .filter(Recipient.is_active.is_(True))
            .order_by(Recipient.name.asc())
            .all()
        )

    def get_recipient_by_id(self, recipient_id: int):
        from messaging_api.models import Recipient

        recipient = self.db.get(Recipient, recipient_id)
        if recipient is None:
            raise NotFoundError(f"recipient {recipient_id} not found")
        return recipient

    def create_recipient(self, recipient) -> None:
        now = _now()
        recipient.created_at = now
        recipient.updated_at = now
        self.db.add(recipient)
        self._commit()
        self.db.refresh(recipient)
        logger.info(f"Recipient created: id={recipient.id}")

    def update_recipient(self, recipient) -> None:
        from messaging_api.models import Recipient

        recipient.updated_at = _now()
        rows = (
            self.db.query(Recipient)
            .filter(Recipient.id == recipient.id)
            .update(
                {
                    "email": recipient.email,
                    "name": recipient.name,
                    "is_active": recipient.is_active,
                    "updated_at": recipient.updated_at,
                },
                synchronize_session=False,
            )
        )
        if rows == 0:
            self.db.rollback()
            raise NotFoundError(f"recipient {recipient.id} not found")
        self._commit()
        logger.info(f"Recipient updated: id={recipient.id}")

    def delete_recipient(self, recipient_id: int) -> None:
        from messaging_api.models import Recipient

        rows = (
            self.db.query(Recipient)
            .filter(Recipient.id == recipient_id)
            .delete()
        )
        if rows == 0:
            self.db.rollback()
            raise NotFoundError(f"recipient {recipient_id} not found")
        self._commit()
        logger.info(f"Recipient deleted: id={recipient_id}")


def get_repository(db: Session = Depends(get_db)) -> SQLRepository:
    """Dependency returning a repository bound to the request's session."""
    return SQLRepository(db)
