"""
Services for the CRM feature: reconciliation, contacts, reservations,
notifications and join capture.
"""

from .contact_service import ContactService
from .join_service import JoinService
from .notification_service import ExternalCallError, NotificationTrigger, TriggerOutcome
from .reconciliation_service import (
    AlreadyBoundError,
    IdentityConflictError,
    ReconciliationError,
    ReconciliationService,
    compute_pending_inbox,
    is_linked,
)
from .reservation_service import ReservationService

__all__ = [
    "AlreadyBoundError",
    "ContactService",
    "ExternalCallError",
    "IdentityConflictError",
    "JoinService",
    "NotificationTrigger",
    "ReconciliationError",
    "ReconciliationService",
    "ReservationService",
    "TriggerOutcome",
    "compute_pending_inbox",
    "is_linked",
]
