"""
Identity reconciliation between chat-platform connections and contacts.

A connection arrives from the chat integration with ``isBound=false`` and
sits in the pending inbox until an operator binds it to an existing
contact or quick-creates a contact from it.

Binding touches two records. The connection is claimed first with a
conditional write (``isBound == false -> true``) so two operators racing
on the same inbox entry cannot both win; if the contact write then fails
the claim is released before the error is surfaced.
"""

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from studio_crm.datastore.base import CUSTOMERS, LINE_CONNECTIONS, DataStore, PersistenceError
from studio_crm.features.crm.domain.models import (
    EXTERNAL_ID_PREFIX,
    Contact,
    DataQualityError,
    InboundConnection,
    is_linked_id,
    now_ms,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

AUTO_CREATED_TAG = "auto-created"
DEFAULT_DISPLAY_NAME = "LINE 用戶"


class ReconciliationError(Exception):
    """Base error for rejected reconciliation operations."""


class AlreadyBoundError(ReconciliationError):
    """The connection has already been claimed by a contact."""


class IdentityConflictError(ReconciliationError):
    """The identity or the contact is already linked elsewhere."""


@dataclass(slots=True)
class BindResult:
    contact: Contact
    connection: InboundConnection


@dataclass(slots=True)
class UnlinkResult:
    contact_id: str
    previous_external_id: str
    released_connection_ids: list[str] = field(default_factory=list)


def is_linked(contact: Contact) -> bool:
    """A contact is linked when it holds a full chat-platform identity."""
    return is_linked_id(contact.external_id)


def claimed_identities(contacts: Iterable[Contact]) -> set[str]:
    return {
        c.external_id
        for c in contacts
        if c.external_id and c.external_id.startswith(EXTERNAL_ID_PREFIX)
    }


def compute_pending_inbox(
    connections: Sequence[InboundConnection], contacts: Iterable[Contact]
) -> list[InboundConnection]:
    """
    Connections still awaiting reconciliation.

    A connection is pending when it is not bound and no contact already
    holds its identity. Input order is preserved.
    """
    claimed = claimed_identities(contacts)
    return [c for c in connections if not c.is_bound and c.external_id not in claimed]


def new_contact_id() -> str:
    return f"cust-{now_ms()}-{uuid.uuid4().hex[:6]}"


class ReconciliationService:
    """Bind, unlink and delete operations over contacts and connections."""

    def __init__(self, store: DataStore, reset_bound_on_unlink: bool = False):
        self._store = store
        self.reset_bound_on_unlink = reset_bound_on_unlink

    async def bind(self, connection_id: str, contact_id: str) -> BindResult:
        """
        Link a pending connection to an existing contact.

        Raises:
            AlreadyBoundError: The connection is already bound (or was claimed concurrently)
            IdentityConflictError: Another contact holds the identity, or the contact
                is linked to a different identity
            NotFoundError: Either record does not exist
            PersistenceError: A write failed
        """
        connection = await self._load_connection(connection_id)
        if connection.is_bound:
            raise AlreadyBoundError(f"connection {connection_id} is already bound")

        contact = await self._load_contact(contact_id)
        if is_linked(contact) and contact.external_id != connection.external_id:
            raise IdentityConflictError(
                f"contact {contact_id} is already linked to another identity"
            )
        await self._ensure_identity_unclaimed(connection.external_id, allowed_contact_id=contact.id)

        await self._claim(connection)

        identity = {
            "UserId": connection.external_id,
            "lineDisplayName": connection.display_name or DEFAULT_DISPLAY_NAME,
            "linePictureUrl": connection.avatar_url or "",
        }
        try:
            await self._store.update_fields(CUSTOMERS, contact.id, identity)
        except PersistenceError:
            await self._release_claim(connection)
            raise

        contact.external_id = identity["UserId"]
        contact.external_display_name = identity["lineDisplayName"]
        contact.avatar_url = identity["linePictureUrl"]
        connection.is_bound = True

        logger.info(
            "Connection bound to contact",
            connection_id=connection.id,
            contact_id=contact.id,
            external_id=connection.external_id,
        )
        return BindResult(contact=contact, connection=connection)

    async def quick_create_and_bind(self, connection_id: str) -> Contact:
        """
        Create a contact from a pending connection and bind it.

        The connection's bound flag is re-checked first, so repeating the call
        for the same connection is rejected rather than creating a duplicate.
        """
        connection = await self._load_connection(connection_id)
        if connection.is_bound:
            raise AlreadyBoundError(f"connection {connection_id} is already bound")
        await self._ensure_identity_unclaimed(connection.external_id)

        await self._claim(connection)

        display_name = connection.display_name or DEFAULT_DISPLAY_NAME
        contact = Contact(
            id=new_contact_id(),
            name=display_name,
            phone="",
            external_id=connection.external_id,
            external_display_name=display_name,
            avatar_url=connection.avatar_url or "",
            tags=[AUTO_CREATED_TAG],
            created_at=now_ms(),
        )
        try:
            await self._store.put_record(CUSTOMERS, contact.id, contact.to_record())
        except PersistenceError:
            await self._release_claim(connection)
            raise

        logger.info(
            "Contact quick-created from connection",
            connection_id=connection.id,
            contact_id=contact.id,
            external_id=connection.external_id,
        )
        return contact

    async def unlink(self, contact_id: str) -> UnlinkResult:
        """
        Clear a contact's chat identity.

        By default the originating connection stays bound, so it does not
        return to the pending inbox. With ``reset_bound_on_unlink`` every
        connection carrying the identity is released.
        """
        contact = await self._load_contact(contact_id)
        previous = contact.external_id

        await self._store.update_fields(
            CUSTOMERS,
            contact.id,
            {"UserId": "", "lineDisplayName": "", "linePictureUrl": ""},
        )

        released: list[str] = []
        if self.reset_bound_on_unlink and previous:
            for record in await self._store.list_records(LINE_CONNECTIONS):
                try:
                    connection = InboundConnection.from_record(record)
                except DataQualityError:
                    continue
                if connection.external_id == previous and connection.is_bound:
                    await self._store.update_fields(
                        LINE_CONNECTIONS, connection.id, {"isBound": False}
                    )
                    released.append(connection.id)

        logger.info(
            "Contact unlinked",
            contact_id=contact.id,
            previous_external_id=previous,
            released_connections=released,
        )
        return UnlinkResult(
            contact_id=contact.id,
            previous_external_id=previous,
            released_connection_ids=released,
        )

    async def delete_contact(self, contact_id: str) -> None:
        """Delete a contact. Reservations and connections referencing it are left as-is."""
        await self._store.delete_record(CUSTOMERS, contact_id)
        logger.info("Contact deleted", contact_id=contact_id)

    async def _load_connection(self, connection_id: str) -> InboundConnection:
        record = await self._store.get_record(LINE_CONNECTIONS, connection_id)
        return InboundConnection.from_record(record)

    async def _load_contact(self, contact_id: str) -> Contact:
        record = await self._store.get_record(CUSTOMERS, contact_id)
        return Contact.from_record(record)

    async def _ensure_identity_unclaimed(
        self, external_id: str, allowed_contact_id: str | None = None
    ) -> None:
        for record in await self._store.list_records(CUSTOMERS):
            if record.get("id") == allowed_contact_id:
                continue
            try:
                contact = Contact.from_record(record)
            except DataQualityError:
                continue
            if contact.external_id and contact.external_id == external_id:
                raise IdentityConflictError(
                    f"identity {external_id} is already held by contact {contact.id}"
                )

    async def _claim(self, connection: InboundConnection) -> None:
        claimed = await self._store.update_fields_if(
            LINE_CONNECTIONS, connection.id, {"isBound": False}, {"isBound": True}
        )
        if not claimed:
            logger.warning("Connection claimed concurrently", connection_id=connection.id)
            raise AlreadyBoundError(f"connection {connection.id} was bound concurrently")

    async def _release_claim(self, connection: InboundConnection) -> None:
        try:
            await self._store.update_fields(LINE_CONNECTIONS, connection.id, {"isBound": False})
            logger.warning(
                "Released connection claim after failed contact write",
                connection_id=connection.id,
            )
        except PersistenceError as e:
            logger.error(
                "Failed to release connection claim; connection left bound without a contact",
                connection_id=connection.id,
                external_id=connection.external_id,
                error=str(e),
            )
