"""
Reservation scheduling.

A reservation copies the contact's chat identity at creation time, is
written first, and only then handed to the notification trigger. A
delivered notification flips ``immediateNotified`` on the reservation.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime

from studio_crm.datastore.base import CUSTOMERS, RESERVATIONS, DataStore, PersistenceError
from studio_crm.features.crm.domain.models import (
    DEFAULT_CUSTOM_TYPE_LABEL,
    OTHER_RESERVATION_TYPE,
    RESERVATION_TYPES,
    Contact,
    DataQualityError,
    Reservation,
    now_ms,
)
from studio_crm.features.crm.services.notification_service import (
    NotificationTrigger,
    TriggerOutcome,
)
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

STATUS_CANCELLED = "cancelled"


@dataclass(slots=True)
class ReservationResult:
    reservation: Reservation
    notification: TriggerOutcome


def validate_date_time(value: str) -> str:
    """Reservations use local date-time strings such as ``2024-05-20T14:30``."""
    try:
        datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid reservation dateTime: {value!r}") from e
    return value


def resolve_custom_label(reservation_type: str, custom_type_label: str | None) -> str | None:
    if reservation_type == OTHER_RESERVATION_TYPE:
        return (custom_type_label or "").strip() or DEFAULT_CUSTOM_TYPE_LABEL
    return None


class ReservationService:
    def __init__(self, store: DataStore, trigger: NotificationTrigger):
        self._store = store
        self._trigger = trigger

    async def list_reservations(self, day: date | None = None) -> list[Reservation]:
        reservations = []
        for record in await self._store.list_records(RESERVATIONS, "dateTime"):
            try:
                reservation = Reservation.from_record(record)
            except DataQualityError as e:
                logger.warning("Skipping malformed reservation", error=str(e))
                continue
            if day is None or reservation.date_only == day.isoformat():
                reservations.append(reservation)
        return reservations

    async def create_reservation(
        self,
        contact_id: str,
        date_time: str,
        reservation_type: str,
        operator: str,
        custom_type_label: str | None = None,
        note: str = "",
    ) -> ReservationResult:
        if reservation_type not in RESERVATION_TYPES:
            raise ValueError(f"unknown reservation type: {reservation_type}")

        contact = Contact.from_record(await self._store.get_record(CUSTOMERS, contact_id))
        reservation = Reservation(
            id=f"res-{now_ms()}-{uuid.uuid4().hex[:6]}",
            contact_id=contact.id,
            customer_name=contact.name,
            external_id=contact.external_id,
            date_time=validate_date_time(date_time),
            type=reservation_type,
            custom_type_label=resolve_custom_label(reservation_type, custom_type_label),
            note=note,
            created_at=now_ms(),
        )
        await self._store.put_record(RESERVATIONS, reservation.id, reservation.to_record())
        logger.info("Reservation created", reservation_id=reservation.id, contact_id=contact.id)

        outcome = await self._notify(reservation, operator, is_update=False)
        return ReservationResult(reservation=reservation, notification=outcome)

    async def update_reservation(
        self,
        reservation_id: str,
        date_time: str,
        reservation_type: str,
        operator: str,
        custom_type_label: str | None = None,
        note: str | None = None,
    ) -> ReservationResult:
        """Reschedule a reservation and notify the customer of the change."""
        if reservation_type not in RESERVATION_TYPES:
            raise ValueError(f"unknown reservation type: {reservation_type}")

        reservation = Reservation.from_record(
            await self._store.get_record(RESERVATIONS, reservation_id)
        )
        reservation.date_time = validate_date_time(date_time)
        reservation.type = reservation_type
        reservation.custom_type_label = resolve_custom_label(reservation_type, custom_type_label)
        reservation.status = "pending"
        reservation.notified = False
        if note is not None:
            reservation.note = note

        await self._store.put_record(RESERVATIONS, reservation.id, reservation.to_record())
        logger.info("Reservation rescheduled", reservation_id=reservation.id)

        outcome = await self._notify(reservation, operator, is_update=True)
        return ReservationResult(reservation=reservation, notification=outcome)

    async def cancel_reservation(self, reservation_id: str) -> None:
        await self._store.update_fields(RESERVATIONS, reservation_id, {"status": STATUS_CANCELLED})
        logger.info("Reservation cancelled", reservation_id=reservation_id)

    async def _notify(
        self, reservation: Reservation, operator: str, is_update: bool
    ) -> TriggerOutcome:
        outcome = await self._trigger.trigger(reservation, operator, is_update=is_update)
        if not outcome.delivered:
            return outcome

        # The customer already has the message; a lost flag must not fail the request
        try:
            await self._store.update_fields(
                RESERVATIONS, reservation.id, {"immediateNotified": True}
            )
        except PersistenceError as e:
            logger.error(
                "Failed to flag reservation as notified",
                reservation_id=reservation.id,
                error=str(e),
            )
            return outcome
        reservation.notified = True
        return outcome
