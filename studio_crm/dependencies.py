"""
Service container wiring.

Everything is built once at startup from a Settings instance and a
DataStore, stored on ``app.state.services`` and handed to routes through
``get_services``. Nothing below reaches for a module-level store, so tests
build the same graph around an in-memory store.
"""

from dataclasses import dataclass
from zoneinfo import ZoneInfo

import httpx
from fastapi import Request

from studio_crm.config import Settings
from studio_crm.datastore import DataStore, InMemoryDataStore, SupabaseDataStore
from studio_crm.features.attribution.pipeline.aggregation import AttributionAggregator
from studio_crm.features.attribution.services import FollowerMetricService
from studio_crm.features.crm.services import (
    ContactService,
    JoinService,
    NotificationTrigger,
    ReconciliationService,
    ReservationService,
)
from studio_crm.features.projects.services import ProjectService
from studio_crm.infrastructure.audit import AuditLogger
from studio_crm.infrastructure.observability.logging import get_logger
from studio_crm.services.openai_service import OpenAIService
from studio_crm.services.snapshot_hub import SnapshotHub

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    store: DataStore
    tz: ZoneInfo
    hub: SnapshotHub
    aggregator: AttributionAggregator
    reconciliation: ReconciliationService
    contacts: ContactService
    trigger: NotificationTrigger
    reservations: ReservationService
    joins: JoinService
    followers: FollowerMetricService
    projects: ProjectService
    ai: OpenAIService
    audit: AuditLogger


def build_datastore(settings: Settings) -> DataStore:
    backend = settings.DATASTORE_BACKEND.lower()
    if backend == "memory":
        logger.warning("Using in-memory datastore; data is lost on restart")
        return InMemoryDataStore()
    if backend == "supabase":
        if not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_SERVICE_ROLE_KEY is required for the supabase datastore")
        config = settings.get_datastore_config()
        return SupabaseDataStore(
            rest_url=settings.rest_url(),
            service_key=settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout=config["timeout"],
            poll_interval=config["poll_interval"],
        )
    raise ValueError(f"Unknown DATASTORE_BACKEND: {settings.DATASTORE_BACKEND}")


def build_container(
    settings: Settings,
    store: DataStore,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
    ai_client=None,
) -> ServiceContainer:
    tz = ZoneInfo(settings.LOCAL_TIMEZONE)
    aggregator = AttributionAggregator(
        baseline_count=settings.ATTRIBUTION_BASELINE_COUNT,
        baseline_timestamp_ms=settings.ATTRIBUTION_BASELINE_TIMESTAMP_MS,
        tz=tz,
    )
    trigger = NotificationTrigger(
        store,
        webhook_url=settings.NOTIFY_WEBHOOK_URL,
        timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
        source_label=settings.NOTIFY_SOURCE_LABEL,
        transport=webhook_transport,
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        tz=tz,
        hub=SnapshotHub(store, aggregator),
        aggregator=aggregator,
        reconciliation=ReconciliationService(
            store, reset_bound_on_unlink=settings.RESET_BOUND_ON_UNLINK
        ),
        contacts=ContactService(store),
        trigger=trigger,
        reservations=ReservationService(store, trigger),
        joins=JoinService(store),
        followers=FollowerMetricService(store),
        projects=ProjectService(store),
        ai=OpenAIService(settings, client=ai_client),
        audit=AuditLogger(store),
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
