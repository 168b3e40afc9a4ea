"""
DataStore capability shared by every feature.

The hosted document store is reached only through this interface so that
services receive it explicitly and tests can swap in the in-memory fake.
Writes to a single record are atomic; nothing here spans records.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

Record = dict[str, Any]
SnapshotListener = Callable[[list[Record]], Awaitable[None]]
Unsubscribe = Callable[[], None]

# Collection names (wire contract with the chat integration and landing page)
CUSTOMERS = "customers"
LINE_CONNECTIONS = "line_connections"
LINE_SOURCES = "line_sources"
RESERVATIONS = "reservations"
NOTIFICATION_LOGS = "notification_logs"
LINE_METRICS = "line_metrics"
PROJECTS = "projects"
AUDIT_LOGS = "audit_logs"


class PersistenceError(Exception):
    """Raised when a read or write against the store fails."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        record_id: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.collection = collection
        self.record_id = record_id
        self.status_code = status_code


class NotFoundError(PersistenceError):
    """Raised when a record does not exist."""


class DataStore(Protocol):
    """Document store operations used by the services."""

    async def list_records(
        self, collection: str, order_by: str | None = None, descending: bool = False
    ) -> list[Record]: ...

    async def get_record(self, collection: str, record_id: str) -> Record: ...

    async def put_record(
        self, collection: str, record_id: str, fields: Record, merge: bool = False
    ) -> None:
        """Write a record; without ``merge`` fields the payload omits are cleared."""

    async def update_fields(self, collection: str, record_id: str, fields: Record) -> None: ...

    async def update_fields_if(
        self, collection: str, record_id: str, expected: Record, fields: Record
    ) -> bool:
        """Apply ``fields`` only while ``expected`` holds; a False flag also matches unset."""

    async def delete_record(self, collection: str, record_id: str) -> None: ...

    async def subscribe(
        self,
        collection: str,
        order_by: str | None,
        listener: SnapshotListener,
        descending: bool = True,
    ) -> Unsubscribe: ...

    async def close(self) -> None: ...


def sort_records(records: list[Record], order_by: str | None, descending: bool = False) -> list[Record]:
    """Order records by a field, keeping records without it at the end."""
    if not order_by:
        return list(records)

    present = [r for r in records if r.get(order_by) is not None]
    missing = [r for r in records if r.get(order_by) is None]
    try:
        present.sort(key=lambda r: r[order_by], reverse=descending)
    except TypeError:
        present.sort(key=lambda r: str(r[order_by]), reverse=descending)
    return present + missing
