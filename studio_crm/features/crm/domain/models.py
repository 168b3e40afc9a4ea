"""
Domain models for the CRM feature.

Records travel as plain dicts using the wire field names shared with the
chat-platform integration and the join landing page. ``from_record``
accepts the aliases older writers used; ``to_record`` always emits the
canonical names.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

EXTERNAL_ID_PREFIX = "U"
LINKED_ID_MIN_LENGTH = 21

RESERVATION_TYPES = ("諮詢", "丈量", "看圖", "簽約", "其他")
OTHER_RESERVATION_TYPE = "其他"
DEFAULT_CUSTOM_TYPE_LABEL = "未命名項目"

NOTIFICATION_SENT = "sent"
NOTIFICATION_SKIPPED = "skipped"
NOTIFICATION_FAILED = "failed"


class DataQualityError(ValueError):
    """Raised when a record carries a malformed or missing required field."""


def parse_timestamp_ms(value: Any) -> int:
    """
    Normalise a stored timestamp to epoch milliseconds.

    Accepts numbers (milliseconds), ISO-8601 strings and server-timestamp
    maps such as ``{"seconds": 1700000000, "nanoseconds": 0}``.

    Raises:
        DataQualityError: If the value cannot be interpreted.
    """
    if isinstance(value, bool) or value is None:
        raise DataQualityError(f"invalid timestamp: {value!r}")

    if isinstance(value, (int, float)):
        if value != value:  # NaN
            raise DataQualityError("invalid timestamp: NaN")
        return int(value)

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            return int(seconds * 1000 + nanos // 1_000_000)
        raise DataQualityError(f"invalid timestamp map: {value!r}")

    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise DataQualityError(f"invalid timestamp: {value!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)

    raise DataQualityError(f"invalid timestamp: {value!r}")


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def _first(record: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _optional_timestamp(value: Any) -> int | None:
    try:
        return parse_timestamp_ms(value)
    except DataQualityError:
        return None


@dataclass(slots=True)
class Contact:
    """A CRM customer, possibly linked to a chat-platform identity."""

    id: str
    name: str
    phone: str = ""
    external_id: str = ""
    external_display_name: str = ""
    avatar_url: str = ""
    tags: list[str] = field(default_factory=list)
    address: str = ""
    created_at: int | None = None

    @property
    def is_linked(self) -> bool:
        return is_linked_id(self.external_id)

    @classmethod
    def from_record(cls, record: dict) -> "Contact":
        if not record.get("id"):
            raise DataQualityError("contact record missing id")
        return cls(
            id=record["id"],
            name=record.get("name") or "",
            phone=record.get("phone") or "",
            external_id=_first(record, "UserId", "lineConnectionId", "lineUserId", default="") or "",
            external_display_name=record.get("lineDisplayName") or "",
            avatar_url=record.get("linePictureUrl") or "",
            tags=list(record.get("tags") or []),
            address=record.get("address") or "",
            created_at=_optional_timestamp(record.get("createdAt")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "UserId": self.external_id,
            "lineDisplayName": self.external_display_name,
            "linePictureUrl": self.avatar_url,
            "tags": list(self.tags),
            "address": self.address,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class InboundConnection:
    """A raw chat-platform handshake awaiting reconciliation."""

    id: str
    external_id: str
    display_name: str = ""
    avatar_url: str = ""
    is_bound: bool = False
    is_blocked: bool = False
    timestamp: int | None = None  # None when the stored value is malformed
    source: str = ""
    last_message: str = ""

    @classmethod
    def from_record(cls, record: dict) -> "InboundConnection":
        if not record.get("id"):
            raise DataQualityError("connection record missing id")
        return cls(
            id=record["id"],
            external_id=_first(record, "UserId", "userId", "lineUserId", default=record["id"]),
            display_name=_first(record, "lineDisplayName", "displayName", default=""),
            avatar_url=_first(record, "linePictureUrl", "pictureUrl", default=""),
            is_bound=record.get("isBound") is True,
            is_blocked=record.get("isBlocked") is True,
            timestamp=_optional_timestamp(record.get("timestamp")),
            source=record.get("source") or "",
            last_message=record.get("lastMessage") or "",
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "UserId": self.external_id,
            "lineDisplayName": self.display_name,
            "linePictureUrl": self.avatar_url,
            "isBound": self.is_bound,
            "isBlocked": self.is_blocked,
            "timestamp": self.timestamp,
            "source": self.source,
            "lastMessage": self.last_message,
        }


@dataclass(slots=True)
class SourceAttribution:
    """externalId -> source tag captured by the join landing page."""

    external_id: str
    source: str
    timestamp: int | None = None

    @classmethod
    def from_record(cls, record: dict) -> "SourceAttribution":
        external_id = _first(record, "UserId", "userId", "id")
        if not external_id:
            raise DataQualityError("source attribution record missing identity")
        return cls(
            external_id=external_id,
            source=record.get("source") or "",
            timestamp=_optional_timestamp(record.get("timestamp")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.external_id,
            "UserId": self.external_id,
            "source": self.source,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class Reservation:
    """A scheduled appointment with a contact."""

    id: str
    contact_id: str
    customer_name: str
    date_time: str
    type: str
    external_id: str = ""
    custom_type_label: str | None = None
    status: str = "pending"
    notified: bool = False
    reminded: bool = False
    note: str = ""
    created_at: int | None = None

    @property
    def date_only(self) -> str:
        return self.date_time[:10]

    @property
    def service_name(self) -> str:
        if self.type == OTHER_RESERVATION_TYPE:
            return self.custom_type_label or "其他事項"
        return self.type

    @classmethod
    def from_record(cls, record: dict) -> "Reservation":
        if not record.get("id") or not record.get("dateTime"):
            raise DataQualityError("reservation record missing id or dateTime")
        return cls(
            id=record["id"],
            contact_id=record.get("customerId") or "",
            customer_name=record.get("customerName") or "",
            date_time=record["dateTime"],
            type=record.get("type") or "",
            external_id=_first(record, "UserId", "lineUserId", default="") or "",
            custom_type_label=record.get("customTypeLabel"),
            status=record.get("status") or "pending",
            notified=record.get("immediateNotified") is True,
            reminded=record.get("reminded") is True,
            note=record.get("note") or "",
            created_at=_optional_timestamp(record.get("createdAt")),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "customerId": self.contact_id,
            "customerName": self.customer_name,
            "UserId": self.external_id,
            "dateTime": self.date_time,
            "dateOnly": self.date_only,
            "type": self.type,
            "customTypeLabel": self.custom_type_label,
            "status": self.status,
            "immediateNotified": self.notified,
            "reminded": self.reminded,
            "note": self.note,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class NotificationLogEntry:
    """Append-only audit record of one notification attempt."""

    id: str
    timestamp: int
    external_id: str
    client_name: str
    type: str
    status: str
    operator: str
    error: str | None = None

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "UserId": self.external_id,
            "clientName": self.client_name,
            "type": self.type,
            "status": self.status,
            "operator": self.operator,
            "error": self.error,
        }


def is_linked_id(external_id: str | None) -> bool:
    return bool(external_id) and external_id.startswith(EXTERNAL_ID_PREFIX) and (
        len(external_id) >= LINKED_ID_MIN_LENGTH
    )
