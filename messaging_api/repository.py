"""
Persistence contract used by the workflows in services.py.

Implementations signal absence by raising NotFoundError. Any other failure
may be raised as-is; the workflows translate it into PersistenceError.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from messaging_api.models import ContactMessage, Recipient


class Repository(ABC):
    """Data operations for contact messages and recipients."""

    # Contact messages (public: create only, admin: list/get)

    @abstractmethod
    def create_contact_message(self, message: "ContactMessage") -> None:
        """Persist a new message and assign its id."""

    @abstractmethod
    def get_contact_messages(self) -> list["ContactMessage"]:
        """Return all messages, newest first."""

    @abstractmethod
    def get_contact_message_by_id(self, message_id: int) -> "ContactMessage":
        """Return one message or raise NotFoundError."""

    @abstractmethod
    def update_contact_message_status(
        self,
        message_id: int,
        status: str,
        last_error: Optional[str] = None
    ) -> None:
        """Transition a message's delivery status or raise NotFoundError."""

    # Recipients (admin only)

    @abstractmethod
    def get_all_recipients(self) -> list["Recipient"]:
        """Return all recipients ordered by name."""

    @abstractmethod
    def get_active_recipients(self) -> list["Recipient"]:
        """Return active recipients ordered by name."""

    @abstractmethod
    def get_recipient_by_id(self, recipient_id: int) -> "Recipient":
        """Return one recipient or raise NotFoundError."""

    @abstractmethod
    def create_recipient(self, recipient: "Recipient") -> None:
        """Persist a new recipient and assign its id."""

    @abstractmethod
    def update_recipient(self, recipient: "Recipient") -> None:
        """Overwrite a stored recipient or raise NotFoundError."""

    @abstractmethod
    def delete_recipient(self, recipient_id: int) -> None:
        """Delete a recipient or raise NotFoundError when nothing was deleted."""
