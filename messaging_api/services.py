"""
Workflows for contact messages and recipients.

Each service is built per request around a Repository (and, for contact
messages, a Publisher). Services never keep records between calls.
"""

import logging
from typing import Any, Optional

from messaging_api.errors import (
    NotFoundError,
    PersistenceError,
    PublicationError,
    ValidationError,
)
from messaging_api.metrics import record_publish_failure
from messaging_api.models import ContactMessage, MessageStatus, Recipient
from messaging_api.publisher import Publisher
from messaging_api.repository import Repository
from messaging_api.schemas import (
    AckResponse,
    ContactMessageCreate,
    ContactMessageEvent,
    RecipientCreate,
    RecipientFields,
    RecipientUpdate,
)
from messaging_api.validation import parse_id, validate_payload

logger = logging.getLogger(__name__)

SUBMISSION_ACK = "Thank you for your message"


class SubmissionResult:
    """Outcome of a contact submission, kept server-side for logging only."""

    def __init__(self, ack: AckResponse, message_id: Optional[int] = None, spam: bool = False):
        self.ack = ack
        self.message_id = message_id
        self.spam = spam


class ContactMessageService:
    """Public submission plus admin reads of contact messages."""

    def __init__(self, repo: Repository, publisher: Publisher):
        self.repo = repo
        self.publisher = publisher

    async def submit(self, payload: Any) -> SubmissionResult:
        """
        Accept a contact form submission.

        Spam (a filled honeypot) gets the same acknowledgment as a genuine
        submission but is neither stored nor published. A publish failure is
        logged and does not change the outcome once the message is stored.

        Raises:
            ValidationError: payload is invalid
            PersistenceError: the message could not be stored
        """
        req = validate_payload(ContactMessageCreate, payload)

        if req.is_spam():
            # Silently accept so bots get no signal they were detected
            logger.info("Contact submission flagged as spam, discarding")
            return SubmissionResult(AckResponse(message=SUBMISSION_ACK), spam=True)

        message = ContactMessage(
            name=req.name,
            email=req.email,
            subject=req.subject,
            message=req.message,
            status=MessageStatus.PENDING.value,
            attempts=0,
        )
        try:
            self.repo.create_contact_message(message)
        except Exception as e:
            logger.error(f"Failed to store contact message: {e}")
            raise PersistenceError("Failed to submit message") from e

        await self._notify(message.id)
        return SubmissionResult(AckResponse(message=SUBMISSION_ACK), message_id=message.id)

    async def _notify(self, message_id: int) -> None:
        event = ContactMessageEvent(message_id=message_id)
        try:
            await self.publisher.publish(event)
        except Exception as e:
            # Message is saved, the notification can be retried from the store
            err = e if isinstance(e, PublicationError) else PublicationError(str(e))
            logger.error(
                "Failed to publish message to queue",
                extra={"message_id": message_id, "error": err.message},
            )
            record_publish_failure()

    def list_messages(self) -> list:
        try:
            return self.repo.get_contact_messages()
        except Exception as e:
            logger.error(f"Failed to list contact messages: {e}")
            raise PersistenceError("Failed to retrieve messages") from e

    def get_message(self, raw_id: str) -> ContactMessage:
        message_id = parse_id(raw_id)
        try:
            return self.repo.get_contact_message_by_id(message_id)
        except NotFoundError:
            raise NotFoundError("Message not found")
        except Exception as e:
            logger.error(f"Failed to get contact message {message_id}: {e}")
            raise PersistenceError("Failed to retrieve message") from e

    def update_status(self, message_id: int, status: str, last_error: Optional[str] = None) -> None:
        """
        Record a delivery attempt outcome. Called by the notification worker.

        Raises:
            ValidationError: status is not a known MessageStatus
            NotFoundError: no message with this id
            PersistenceError: the update could not be stored
        """
        try:
            status = MessageStatus(status).value
        except ValueError:
            raise ValidationError(f"status: must be one of {[s.value for s in MessageStatus]}")
        try:
            self.repo.update_contact_message_status(message_id, status, last_error)
        except NotFoundError:
            raise NotFoundError("Message not found")
        except Exception as e:
            logger.error(f"Failed to update status of contact message {message_id}: {e}")
            raise PersistenceError("Failed to update message status") from e


class RecipientService:
    """Admin CRUD over notification recipients."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def list_recipients(self) -> list:
        try:
            return self.repo.get_all_recipients()
        except Exception as e:
            logger.error(f"Failed to list recipients: {e}")
            raise PersistenceError("Failed to retrieve recipients") from e

    def get(self, raw_id: str) -> Recipient:
        return self._fetch(parse_id(raw_id))

    def _fetch(self, recipient_id: int) -> Recipient:
        try:
            return self.repo.get_recipient_by_id(recipient_id)
        except NotFoundError:
            raise NotFoundError("Recipient not found")
        except Exception as e:
            logger.error(f"Failed to get recipient {recipient_id}: {e}")
            raise PersistenceError("Failed to retrieve recipient") from e

    def create(self, payload: Any) -> Recipient:
        req = validate_payload(RecipientCreate, payload)
        recipient = Recipient(
            email=req.email,
            name=req.name,
            is_active=True if req.is_active is None else req.is_active,
        )
        try:
            self.repo.create_recipient(recipient)
        except Exception as e:
            logger.error(f"Failed to create recipient: {e}")
            raise PersistenceError("Failed to create recipient") from e
        return recipient

    def update(self, raw_id: str, payload: Any) -> Recipient:
        """
        Merge the fields present in payload into the stored recipient.

        Absent fields, and fields sent as null, keep their stored values.
        The merged record is validated as a whole before anything is written.
        """
        recipient_id = parse_id(raw_id)
        existing = self._fetch(recipient_id)

        req = validate_payload(RecipientUpdate, payload)
        merged = {
            "email": existing.email,
            "name": existing.name,
            "is_active": existing.is_active,
        }
        for field in req.model_fields_set:
            value = getattr(req, field)
            if value is not None:
                merged[field] = value
        fields = validate_payload(RecipientFields, merged)

        existing.email = fields.email
        existing.name = fields.name
        existing.is_active = fields.is_active
        try:
            self.repo.update_recipient(existing)
        except NotFoundError:
            raise NotFoundError("Recipient not found")
        except Exception as e:
            logger.error(f"Failed to update recipient {recipient_id}: {e}")
            raise PersistenceError("Failed to update recipient") from e
        return existing

    def delete(self, raw_id: str) -> None:
        recipient_id = parse_id(raw_id)
        try:
            self.repo.delete_recipient(recipient_id)
        except NotFoundError:
            raise NotFoundError("Recipient not found")
        except Exception as e:
            logger.error(f"Failed to delete recipient {recipient_id}: {e}")
            raise PersistenceError("Failed to delete recipient") from e
