"""
Translation of domain exceptions into HTTP errors.
"""

from fastapi import HTTPException, status

from studio_crm.datastore.base import NotFoundError, PersistenceError
from studio_crm.features.crm.domain.models import DataQualityError
from studio_crm.features.crm.services.notification_service import ExternalCallError
from studio_crm.features.crm.services.reconciliation_service import ReconciliationError
from studio_crm.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def to_http_error(error: Exception, operation: str, **context) -> HTTPException:
    """
    Map a service exception to an HTTPException and log it.

    NotFoundError is checked before PersistenceError since it subclasses it.
    DataQualityError is checked before ValueError for the same reason.
    """
    if isinstance(error, NotFoundError):
        logger.info("Resource not found", operation=operation, error=str(error), **context)
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))

    if isinstance(error, ReconciliationError):
        logger.info("Reconciliation conflict", operation=operation, error=str(error), **context)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))

    if isinstance(error, DataQualityError):
        logger.error("Stored record is malformed", operation=operation, error=str(error), **context)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Stored record is malformed"
        )

    if isinstance(error, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    if isinstance(error, (PersistenceError, ExternalCallError)):
        logger.error(
            "Upstream call failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {operation}"
        )

    logger.error(
        "Unexpected error",
        operation=operation,
        error=str(error),
        error_type=type(error).__name__,
        **context,
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {operation}"
    )
