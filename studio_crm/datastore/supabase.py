"""
Hosted DataStore backed by the Supabase PostgREST API.

Each collection is a table keyed by a text ``id`` column whose other
columns carry the record's wire field names. Realtime snapshots are
emulated: a polling task per subscribed collection pushes a new snapshot
whenever the rows change, and every write made through this client
refreshes its collection immediately.
"""

import asyncio
from typing import Any

import httpx

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

# Reads are retried; writes never are
MAX_READ_RETRIES = 3
BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if value is False:
        # A NULL flag counts as unset
        return "not.is.true"
    if value is True:
        return "is.true"
    return f"eq.{value}"


class SupabaseDataStore:
    """PostgREST client implementing the DataStore capability."""

    def __init__(
        self,
        rest_url: str,
        service_key: str,
        timeout: float = 15.0,
        poll_interval: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=rest_url.rstrip("/"),
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._listeners: dict[str, list[tuple[str | None, bool, SnapshotListener]]] = {}
        self._last_snapshot: dict[str, list[Record]] = {}
        self._poll_tasks: dict[str, asyncio.Task] = {}

    async def _request(
        self, method: str, collection: str, record_id: str | None = None, **kwargs
    ) -> httpx.Response:
        attempts = MAX_READ_RETRIES if method == "GET" else 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, f"/{collection}", **kwargs)
            except httpx.RequestError as e:
                if attempt < attempts:
                    await asyncio.sleep(BACKOFF_FACTOR * (2 ** (attempt - 1)))
                    continue
                logger.error(
                    "Datastore request failed",
                    method=method,
                    collection=collection,
                    record_id=record_id,
                    error=str(e),
                )
                raise PersistenceError(
                    f"{method} {collection} failed: {e}", collection=collection, record_id=record_id
                ) from e

            if response.status_code in RETRY_STATUS_CODES and attempt < attempts:
                logger.debug(
                    "Datastore retrying request",
                    collection=collection,
                    attempt=attempt,
                    status_code=response.status_code,
                )
                await asyncio.sleep(BACKOFF_FACTOR * (2 ** (attempt - 1)))
                continue

            if response.status_code >= 400:
                logger.error(
                    "Datastore request rejected",
                    method=method,
                    collection=collection,
                    record_id=record_id,
                    status_code=response.status_code,
                    body=response.text[:300],
                )
                raise PersistenceError(
                    f"{method} {collection} returned {response.status_code}",
                    collection=collection,
                    record_id=record_id,
                    status_code=response.status_code,
                )
            return response

        raise PersistenceError(f"{method} {collection} retry loop exhausted", collection=collection)

    async def list_records(
        self, collection: str, order_by: str | None = None, descending: bool = False
    ) -> list[Record]:
        params = {"select": "*"}
        if order_by:
            direction = "desc" if descending else "asc"
            params["order"] = f"{order_by}.{direction}.nullslast"
        response = await self._request("GET", collection, params=params)
        return response.json()

    async def get_record(self, collection: str, record_id: str) -> Record:
        response = await self._request(
            "GET", collection, record_id, params={"select": "*", "id": f"eq.{record_id}"}
        )
        rows = response.json()
        if not rows:
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        return rows[0]

    async def put_record(
        self, collection: str, record_id: str, fields: Record, merge: bool = False
    ) -> None:
        # Upsert on the primary key; a replace clears the columns the payload omits
        payload = {**fields, "id": record_id}
        if not merge:
            response = await self._request(
                "GET", collection, record_id, params={"select": "*", "id": f"eq.{record_id}"}
            )
            for row in response.json():
                for column in row:
                    payload.setdefault(column, None)
        await self._request(
            "POST",
            collection,
            record_id,
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        logger.debug("Record written", collection=collection, record_id=record_id, merge=merge)
        await self._refresh_after_write(collection)

    async def update_fields(self, collection: str, record_id: str, fields: Record) -> None:
        response = await self._request(
            "PATCH",
            collection,
            record_id,
            params={"id": f"eq.{record_id}"},
            json=fields,
            headers={"Prefer": "return=representation"},
        )
        if not response.json():
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        await self._refresh_after_write(collection)

    async def update_fields_if(
        self, collection: str, record_id: str, expected: Record, fields: Record
    ) -> bool:
        params = {"id": f"eq.{record_id}"}
        for key, value in expected.items():
            params[key] = _filter_value(value)

        response = await self._request(
            "PATCH",
            collection,
            record_id,
            params=params,
            json=fields,
            headers={"Prefer": "return=representation"},
        )
        if response.json():
            await self._refresh_after_write(collection)
            return True

        # Distinguish "condition failed" from "record missing"
        await self.get_record(collection, record_id)
        return False

    async def delete_record(self, collection: str, record_id: str) -> None:
        response = await self._request(
            "DELETE",
            collection,
            record_id,
            params={"id": f"eq.{record_id}"},
            headers={"Prefer": "return=representation"},
        )
        if not response.json():
            raise NotFoundError(
                f"{collection}/{record_id} not found", collection=collection, record_id=record_id
            )
        await self._refresh_after_write(collection)

    async def subscribe(
        self,
        collection: str,
        order_by: str | None,
        listener: SnapshotListener,
        descending: bool = True,
    ) -> Unsubscribe:
        entry = (order_by, descending, listener)
        self._listeners.setdefault(collection, []).append(entry)

        records = await self.list_records(collection)
        self._last_snapshot[collection] = records
        await listener(sort_records(records, order_by, descending))

        if collection not in self._poll_tasks:
            self._poll_tasks[collection] = asyncio.create_task(self._poll_loop(collection))

        def _unsubscribe() -> None:
            listeners = self._listeners.get(collection, [])
            if entry in listeners:
                listeners.remove(entry)
            if not listeners and collection in self._poll_tasks:
                self._poll_tasks.pop(collection).cancel()

        return _unsubscribe

    async def _poll_loop(self, collection: str) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self._refresh(collection)
            except PersistenceError as e:
                logger.warning("Snapshot poll failed", collection=collection, error=str(e))

    async def _refresh_after_write(self, collection: str) -> None:
        # The write is committed; a failed re-read only delays the snapshot to the next poll
        try:
            await self._refresh(collection)
        except PersistenceError as e:
            logger.warning("Snapshot refresh after write failed", collection=collection, error=str(e))

    async def _refresh(self, collection: str) -> None:
        listeners = self._listeners.get(collection)
        if not listeners:
            return

        records = await self.list_records(collection)
        if records == self._last_snapshot.get(collection):
            return
        self._last_snapshot[collection] = records

        for order_by, descending, listener in list(listeners):
            try:
                await listener(sort_records(records, order_by, descending))
            except Exception as e:
                logger.error(
                    "Snapshot listener failed",
                    collection=collection,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def close(self) -> None:
        """Cancel polling tasks and close the underlying HTTP client."""
        for task in self._poll_tasks.values():
            task.cancel()
        self._poll_tasks.clear()
        self._listeners.clear()
        await self._client.aclose()
