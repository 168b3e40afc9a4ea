"""
In-memory DataStore used for local development and tests.

Every successful write pushes a full snapshot of the touched collection to
its subscribers, mirroring the hosted store's realtime listeners.
"""

import copy
from collections import defaultdict

from studio_crm.datastore.base import (
    NotFoundError,
    PersistenceError,
    Record,
    SnapshotListener,
    Unsubscribe,
    sort_records,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class InMemoryDataStore:
    """Dictionary-backed store with snapshot subscriptions."""

    def __init__(self, seed: dict[str, list[Record]] | None = None):
        self._collections: dict[str, dict[str, Record]] = defaultdict(dict)
        self._listeners: dict[str, list[tuple[str | None, bool, SnapshotListener]]] = defaultdict(
            list
        )
        # collection -> reason; lets tests simulate a failing backend
        self.failing_collections: dict[str, str] = {}

        for collection, records in (seed or {}).items():
            for record in records:
                self._collections[collection][record["id"]] = copy.deepcopy(record)

    def _check(self, collection: str, record_id: str | None = None) -> None:
        reason = self.failing_collections.get(collection)
        if reason:
            raise PersistenceError(reason, collection=collection, record_id=record_id)

    async def list_records(
        self, collection: str, order_by: str | None = None, descending: bool = False
    ) -> list[Record]:
        self._check(collection)
        records = [copy.deepcopy(r) for r in self._collections[collection].values()]
        return sort_records(records, order_by, descending)

    async def get_record(self, collection: str, record_id: str) -> Record:
        self._check(collection, record_id)
        record = self._collections[collection].get(record_id)
        if record is None:
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        return copy.deepcopy(record)

    async def put_record(
        self, collection: str, record_id: str, fields: Record, merge: bool = False
    ) -> None:
        self._check(collection, record_id)
        existing = self._collections[collection].get(record_id)
        if merge and existing is not None:
            record = {**existing, **copy.deepcopy(fields)}
        else:
            record = copy.deepcopy(fields)
        record["id"] = record_id
        self._collections[collection][record_id] = record
        await self._notify(collection)

    async def update_fields(self, collection: str, record_id: str, fields: Record) -> None:
        self._check(collection, record_id)
        existing = self._collections[collection].get(record_id)
        if existing is None:
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        existing.update(copy.deepcopy(fields))
        await self._notify(collection)

    async def update_fields_if(
        self, collection: str, record_id: str, expected: Record, fields: Record
    ) -> bool:
        self._check(collection, record_id)
        existing = self._collections[collection].get(record_id)
        if existing is None:
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        for key, value in expected.items():
            current = existing.get(key)
            if value is False:
                if current is True:
                    return False
            elif current != value:
                return False
        existing.update(copy.deepcopy(fields))
        await self._notify(collection)
        return True

    async def delete_record(self, collection: str, record_id: str) -> None:
        self._check(collection, record_id)
        if self._collections[collection].pop(record_id, None) is None:
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        await self._notify(collection)

    async def subscribe(
        self,
        collection: str,
        order_by: str | None,
        listener: SnapshotListener,
        descending: bool = True,
    ) -> Unsubscribe:
        entry = (order_by, descending, listener)
        self._listeners[collection].append(entry)
        await listener(await self.list_records(collection, order_by, descending))

        def _unsubscribe() -> None:
            if entry in self._listeners[collection]:
                self._listeners[collection].remove(entry)

        return _unsubscribe

    async def _notify(self, collection: str) -> None:
        for order_by, descending, listener in list(self._listeners[collection]):
            snapshot = sort_records(
                [copy.deepcopy(r) for r in self._collections[collection].values()],
                order_by,
                descending,
            )
            try:
                await listener(snapshot)
            except Exception as e:
                logger.error(
                    "Snapshot listener failed",
                    collection=collection,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def close(self) -> None:
        self._listeners.clear()
