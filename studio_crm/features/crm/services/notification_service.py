"""
Reservation notification trigger.

When a reservation is created (or rescheduled) the automation platform is
asked to message the customer through the chat platform. Every attempt is
recorded in ``notification_logs`` before any network call is made.

The webhook is fire-and-forget: its body is never read. Transport errors
and non-2xx responses are reported back in the ``TriggerOutcome`` and mark
the log entry ``failed``; they are never raised to the caller.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

import httpx

from studio_crm.datastore.base import NOTIFICATION_LOGS, DataStore
from studio_crm.features.crm.domain.models import (
    EXTERNAL_ID_PREFIX,
    NOTIFICATION_FAILED,
    NOTIFICATION_SENT,
    NOTIFICATION_SKIPPED,
    NotificationLogEntry,
    Reservation,
    now_ms,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TEST_RECIPIENT = "SYSTEM_TEST"
TEST_SERVICE_NAME = "連線測試"
UNKNOWN_CLIENT = "未知客戶"


class ExternalCallError(Exception):
    """The automation webhook could not be reached or rejected the call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class TriggerOutcome:
    attempted: bool
    delivered: bool
    log_entry: NotificationLogEntry | None = None
    error: str | None = None


def evaluate(external_id: str | None) -> bool:
    """A reservation can be notified when it carries a chat-platform identity."""
    return bool(external_id) and external_id.startswith(EXTERNAL_ID_PREFIX)


def format_appointment_time(date_time: str) -> str:
    try:
        parsed = datetime.fromisoformat(date_time)
    except ValueError:
        return date_time
    return parsed.strftime("%Y/%m/%d %H:%M")


class NotificationTrigger:
    """Decides whether to call the automation webhook and records the attempt."""

    def __init__(
        self,
        store: DataStore,
        webhook_url: str | None,
        timeout: float = 10.0,
        source_label: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._store = store
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.source_label = source_label
        self._transport = transport

    async def trigger(
        self, reservation: Reservation, operator: str, is_update: bool = False
    ) -> TriggerOutcome:
        """
        Record a notification log entry and, when eligible, call the webhook.

        Raises:
            PersistenceError: The log entry could not be written
        """
        eligible = evaluate(reservation.external_id) and bool(self.webhook_url)
        entry = NotificationLogEntry(
            id=f"notify-{now_ms()}-{uuid.uuid4().hex[:6]}",
            timestamp=now_ms(),
            external_id=reservation.external_id,
            client_name=reservation.customer_name,
            type=reservation.service_name,
            status=NOTIFICATION_SENT if eligible else NOTIFICATION_SKIPPED,
            operator=operator,
        )
        await self._store.put_record(NOTIFICATION_LOGS, entry.id, entry.to_record())

        if not eligible:
            logger.info(
                "Notification skipped",
                reservation_id=reservation.id,
                has_identity=evaluate(reservation.external_id),
                webhook_configured=bool(self.webhook_url),
            )
            return TriggerOutcome(attempted=False, delivered=False, log_entry=entry)

        params = {
            "lineUserId": reservation.external_id,
            "clientName": reservation.customer_name or UNKNOWN_CLIENT,
            "appointmentTime": format_appointment_time(reservation.date_time),
            "serviceName": reservation.service_name,
            "status": reservation.status,
            "isUpdate": str(is_update).lower(),
            "source": self.source_label,
        }

        try:
            await self._post(params)
        except ExternalCallError as e:
            entry.status = NOTIFICATION_FAILED
            entry.error = str(e)
            await self._mark_failed(entry)
            return TriggerOutcome(attempted=True, delivered=False, log_entry=entry, error=str(e))

        logger.info(
            "Notification sent",
            reservation_id=reservation.id,
            external_id=reservation.external_id,
            is_update=is_update,
        )
        return TriggerOutcome(attempted=True, delivered=True, log_entry=entry)

    async def send_test_notification(self, operator: str) -> bool:
        """Post a connection-test payload to the webhook."""
        if not self.webhook_url:
            return False
        params = {
            "lineUserId": TEST_RECIPIENT,
            "clientName": operator,
            "appointmentTime": datetime.now().strftime("%Y/%m/%d %H:%M"),
            "serviceName": TEST_SERVICE_NAME,
            "status": "pending",
            "isUpdate": "false",
            "source": self.source_label,
        }
        try:
            await self._post(params)
        except ExternalCallError:
            return False
        return True

    async def _post(self, params: dict[str, str]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, params=params)
        except httpx.HTTPError as e:
            logger.warning("Webhook call failed", error=str(e), error_type=type(e).__name__)
            raise ExternalCallError(f"webhook unreachable: {e}") from e

        if not response.is_success:
            logger.warning("Webhook rejected call", status_code=response.status_code)
            raise ExternalCallError(
                f"webhook returned {response.status_code}", status_code=response.status_code
            )

    async def _mark_failed(self, entry: NotificationLogEntry) -> None:
        # The attempt already happened; a failure to update its status is only logged
        try:
            await self._store.update_fields(
                NOTIFICATION_LOGS, entry.id, {"status": entry.status, "error": entry.error}
            )
        except Exception as e:
            logger.error(
                "Failed to mark notification log as failed",
                log_id=entry.id,
                error=str(e),
            )
