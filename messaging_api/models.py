"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

import enum

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, Text

from messaging_api.storage import Base


# 64-bit ids everywhere except SQLite, which only autoincrements INTEGER keys
IdType = BigInteger().with_variant(Integer, "sqlite")


class MessageStatus(str, enum.Enum):
    """Delivery status of a contact message."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ContactMessage(Base):
    """
    A message submitted through the public contact form.

    Table: contact_messages
    Content columns are stored exactly as submitted.
    """
    __tablename__ = "contact_messages"

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=MessageStatus.PENDING.value, index=True)
    last_error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class Recipient(Base):
    """
    An email address notified about new contact messages.

    Table: recipients
    """
    __tablename__ = "recipients"

    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
