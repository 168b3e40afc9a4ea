"""
AuditLogger - operator action trail.

Every console action that changes customer data (binding an inbox entry,
quick-creating a contact, unlinking, deleting, reservation changes) is
written to the `audit_logs` collection and to the structured log.

Usage:
    await audit.log(
        operator="王小明",
        action="connection_bound",
        resource_type="line_connection",
        resource_id=connection_id,
        request_id=request.state.request_id,
    )

Audit writes never fail the request.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from studio_crm.datastore.base import AUDIT_LOGS, DataStore, PersistenceError
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class AuditLogger:
    def __init__(self, store: DataStore):
        self._store = store

    async def log(
        self,
        operator: str,
        action: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        request_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Log an audit event to the datastore and structured logs.

        Returns:
            True if stored, False if the datastore write failed (never raises)
        """
        # Structured log first; it is the copy that always survives
        logger.info(
            "Audit event",
            audit_action=action,
            operator=operator,
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            request_id=request_id,
        )

        created_at = datetime.now(timezone.utc)
        entry_id = f"audit-{uuid.uuid4().hex}"
        record = {
            "id": entry_id,
            "operator": operator,
            "action": action,
            "resourceType": resource_type,
            "resourceId": resource_id,
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "requestId": request_id,
            "metadata": metadata or {},
            "createdAt": created_at.isoformat(),
        }

        try:
            await self._store.put_record(AUDIT_LOGS, entry_id, record)
            return True
        except PersistenceError as e:
            logger.error(
                "Failed to write audit log to datastore",
                error=str(e),
                action=action,
                operator=operator,
                fallback_data=record,
            )
            return False
