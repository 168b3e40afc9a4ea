"""
Snapshot hub for the CRM collections.

Subscribes to contacts, connections and source attributions and keeps the
latest full snapshot of each as one immutable tuple. Derived views (the
pending inbox, attribution reports) are recomputed from that tuple on
demand, so it does not matter in which order the three streams arrive.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from types import MappingProxyType

from studio_crm.datastore.base import CUSTOMERS, LINE_CONNECTIONS, LINE_SOURCES, DataStore, Record
from studio_crm.features.attribution.domain.models import AttributionReport, TimeRange
from studio_crm.features.attribution.pipeline.aggregation.service import AttributionAggregator
from studio_crm.features.crm.domain.models import (
    Contact,
    DataQualityError,
    InboundConnection,
    SourceAttribution,
)
from studio_crm.features.crm.services.reconciliation_service import compute_pending_inbox
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CrmSnapshot:
    contacts: tuple[Contact, ...] = ()
    connections: tuple[InboundConnection, ...] = ()
    source_lookup: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0


def _parse_all(records: list[Record], model, collection: str) -> list:
    parsed = []
    for record in records:
        try:
            parsed.append(model.from_record(record))
        except DataQualityError as e:
            logger.warning("Skipping malformed record", collection=collection, error=str(e))
    return parsed


class SnapshotHub:
    def __init__(self, store: DataStore, aggregator: AttributionAggregator):
        self._store = store
        self._aggregator = aggregator
        self._snapshot = CrmSnapshot()
        self._unsubscribes = []

    @property
    def snapshot(self) -> CrmSnapshot:
        return self._snapshot

    @property
    def started(self) -> bool:
        return bool(self._unsubscribes)

    async def start(self) -> None:
        if self.started:
            return
        self._unsubscribes = [
            await self._store.subscribe(CUSTOMERS, "createdAt", self._on_contacts),
            await self._store.subscribe(LINE_CONNECTIONS, "timestamp", self._on_connections),
            await self._store.subscribe(LINE_SOURCES, "timestamp", self._on_sources),
        ]
        logger.info(
            "Snapshot hub started",
            contacts=len(self._snapshot.contacts),
            connections=len(self._snapshot.connections),
        )

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

    async def _on_contacts(self, records: list[Record]) -> None:
        contacts = tuple(_parse_all(records, Contact, CUSTOMERS))
        self._swap(contacts=contacts)

    async def _on_connections(self, records: list[Record]) -> None:
        connections = tuple(_parse_all(records, InboundConnection, LINE_CONNECTIONS))
        self._swap(connections=connections)

    async def _on_sources(self, records: list[Record]) -> None:
        lookup = {}
        for attribution in _parse_all(records, SourceAttribution, LINE_SOURCES):
            if attribution.source:
                lookup[attribution.external_id] = attribution.source
        self._swap(source_lookup=MappingProxyType(lookup))

    def _swap(self, **changes) -> None:
        self._snapshot = replace(self._snapshot, version=self._snapshot.version + 1, **changes)
        logger.debug("Snapshot updated", version=self._snapshot.version, changed=list(changes))

    def pending_inbox(self) -> list[InboundConnection]:
        snapshot = self._snapshot
        return compute_pending_inbox(snapshot.connections, snapshot.contacts)

    def attribution_report(
        self,
        range_: TimeRange = TimeRange.ALL,
        custom_start: date | None = None,
        custom_end: date | None = None,
        now: datetime | None = None,
    ) -> AttributionReport:
        snapshot = self._snapshot
        return self._aggregator.build_report(
            snapshot.connections,
            snapshot.source_lookup,
            range_,
            custom_start,
            custom_end,
            now,
        )
