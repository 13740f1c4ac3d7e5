"""
Simulated support mailbox.

Urgent-assistance emails are not actually sent. They are stored in an
in-memory outbox and acknowledged with a reference number, which is all
the dialog needs to confirm delivery to the student.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, TypedDict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupportEmail:
    """An email drafted by the student during urgent assistance."""
    recipient: str
    sender: str
    student_name: str
    date_of_birth: str
    body: str


class SentEmail(TypedDict):
    """Email record kept in the outbox."""

    reference: str
    recipient: str
    sender: str
    student_name: str
    date_of_birth: str
    body: str
    sent_at: str


class SendResult(TypedDict, total=False):
    """Result from send_support_email."""

    success: bool
    message: str
    reference: str
    details: SentEmail


_outbox: dict[str, SentEmail] = {}


def send_support_email(email: SupportEmail) -> SendResult:
    """Store the email in the outbox and return a delivery reference."""
    missing = [
        field_name
        for field_name, value in [
            ("recipient", email.recipient),
            ("sender", email.sender),
            ("body", email.body),
        ]
        if not value or not value.strip()
    ]
    if missing:
        return {
            "success": False,
            "message": f"Cannot send email - missing required fields: {', '.join(missing)}.",
        }

    ref = f"EM-{uuid.uuid4().hex[:6].upper()}"
    record: SentEmail = {
        "reference": ref,
        "recipient": email.recipient,
        "sender": email.sender,
        "student_name": email.student_name,
        "date_of_birth": email.date_of_birth,
        "body": email.body,
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }
    _outbox[ref] = record
    logger.info("Support email %s queued from %s to %s", ref, email.sender, email.recipient)

    return {
        "success": True,
        "reference": ref,
        "message": f"Email {ref} delivered to {email.recipient}.",
        "details": record,
    }


def get_sent_email(reference: str) -> Optional[SentEmail]:
    """Retrieve a sent email by reference number."""
    return _outbox.get(reference)


def list_outbox() -> list[SentEmail]:
    """Return every sent email, oldest first."""
    return list(_outbox.values())


def reset() -> None:
    """Clear the outbox. Used by test fixtures for isolation."""
    _outbox.clear()
