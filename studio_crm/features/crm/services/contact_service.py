"""
Contact listing and manual creation for the console.
"""

from studio_crm.datastore.base import CUSTOMERS, DataStore
from studio_crm.features.crm.domain.models import Contact, DataQualityError, now_ms
from studio_crm.features.crm.services.reconciliation_service import new_contact_id
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def parse_tags(raw: str | list[str] | None) -> list[str]:
    """Accept a comma separated string or a list; drop blanks."""
    if not raw:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    return [t.strip() for t in items if t and t.strip()]


def matches_search(contact: Contact, term: str) -> bool:
    if not term:
        return True
    return term.lower() in contact.name.lower() or term in contact.phone


class ContactService:
    def __init__(self, store: DataStore):
        self._store = store

    async def list_contacts(self, search: str = "") -> list[Contact]:
        contacts = []
        for record in await self._store.list_records(CUSTOMERS, "createdAt", descending=True):
            try:
                contact = Contact.from_record(record)
            except DataQualityError as e:
                logger.warning("Skipping malformed contact", error=str(e))
                continue
            if matches_search(contact, search.strip()):
                contacts.append(contact)
        return contacts

    async def create_contact(
        self,
        name: str,
        phone: str = "",
        address: str = "",
        tags: str | list[str] | None = None,
    ) -> Contact:
        if not name.strip():
            raise ValueError("contact name is required")

        contact = Contact(
            id=new_contact_id(),
            name=name.strip(),
            phone=phone.strip(),
            address=address.strip(),
            tags=parse_tags(tags),
            created_at=now_ms(),
        )
        await self._store.put_record(CUSTOMERS, contact.id, contact.to_record())
        logger.info("Contact created", contact_id=contact.id)
        return contact
