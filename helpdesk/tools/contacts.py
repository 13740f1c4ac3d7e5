"""Staff contact directory lookups and contact card rendering."""

import logging
from typing import Optional

from helpdesk.schemas.script_schema import Contact, ScriptDocument

logger = logging.getLogger(__name__)


def lookup_contact(document: ScriptDocument, role: str) -> Optional[Contact]:
    """Look up a staff contact by its canonical role label. Returns None if not listed."""
    contact = document.contacts.get(role)
    if contact is None:
        logger.warning("No contact listed for role '%s'", role)
    return contact


def format_contact_card(contact: Contact, header: str = "Contact Information:") -> str:
    """Render a contact as the multi-line card shown in the chat."""
    return (
        f"{header}\n\n"
        f"{contact.name}\n"
        f"{contact.title}\n\n"
        f"Email: {contact.email}\n"
        f"Phone: {contact.phone}"
    )
