"""
Join landing-page capture.

Marketing links carry a ``src`` code. When a visitor opens one, the page
resolves their chat-platform profile and reports it here before
redirecting them to the official account. The visit becomes a pending
connection and the source code is remembered for attribution.
"""

from dataclasses import dataclass

from studio_crm.datastore.base import LINE_CONNECTIONS, LINE_SOURCES, DataStore, NotFoundError
from studio_crm.features.crm.domain.models import (
    EXTERNAL_ID_PREFIX,
    InboundConnection,
    SourceAttribution,
    now_ms,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SOURCE = "direct"
JOIN_PLATFORM = "LIFF_JOIN_PAGE"


@dataclass(slots=True)
class JoinResult:
    connection: InboundConnection
    first_visit: bool


class JoinService:
    def __init__(self, store: DataStore):
        self._store = store

    async def record_join(
        self,
        external_id: str,
        display_name: str,
        avatar_url: str = "",
        source: str | None = None,
    ) -> JoinResult:
        """
        Upsert the connection and its source attribution.

        A returning visitor keeps their first-seen timestamp and, if already
        bound, stays bound.
        """
        if not external_id or not external_id.startswith(EXTERNAL_ID_PREFIX):
            raise ValueError("external id must be a chat-platform user id")

        source = (source or "").strip() or DEFAULT_SOURCE
        seen_at = now_ms()

        try:
            existing = InboundConnection.from_record(
                await self._store.get_record(LINE_CONNECTIONS, external_id)
            )
        except NotFoundError:
            existing = None

        connection = InboundConnection(
            id=external_id,
            external_id=external_id,
            display_name=display_name,
            avatar_url=avatar_url or "",
            is_bound=existing.is_bound if existing else False,
            is_blocked=False,
            timestamp=existing.timestamp if existing and existing.timestamp else seen_at,
            source=(existing.source if existing and existing.source else source),
            last_message=existing.last_message if existing else "",
        )
        fields = {**connection.to_record(), "platform": JOIN_PLATFORM, "lastSeen": seen_at}
        await self._store.put_record(LINE_CONNECTIONS, external_id, fields, merge=True)

        # First touch wins: a returning visitor keeps the source that brought them in
        attribution = SourceAttribution(
            external_id=external_id, source=connection.source, timestamp=connection.timestamp
        )
        await self._store.put_record(
            LINE_SOURCES, external_id, attribution.to_record(), merge=True
        )

        logger.info(
            "Join captured",
            external_id=external_id,
            source=connection.source,
            first_visit=existing is None,
        )
        return JoinResult(connection=connection, first_visit=existing is None)
