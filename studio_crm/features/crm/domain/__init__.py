"""
Domain subpackage for the CRM feature.
"""

from .models import (
    Contact,
    DataQualityError,
    InboundConnection,
    NotificationLogEntry,
    Reservation,
    SourceAttribution,
    is_linked_id,
    now_ms,
    parse_timestamp_ms,
)

__all__ = [
    "Contact",
    "DataQualityError",
    "InboundConnection",
    "NotificationLogEntry",
    "Reservation",
    "SourceAttribution",
    "is_linked_id",
    "now_ms",
    "parse_timestamp_ms",
]
