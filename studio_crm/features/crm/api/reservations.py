"""
Reservation routes. Creating or rescheduling a reservation also fires the
customer notification; the response reports what happened to it.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, status

from studio_crm.auth.verify import Operator, get_operator
from studio_crm.dependencies import ServiceContainer, get_services
from studio_crm.features.crm.domain.models import Reservation
from studio_crm.features.crm.services.notification_service import TriggerOutcome
from studio_crm.features.crm.services.reservation_service import ReservationResult
from studio_crm.models.api.crm_request import CreateReservationRequest, UpdateReservationRequest
from studio_crm.models.api.crm_response import (
    NotificationCheckResponse,
    NotificationOutcomeResponse,
    ReservationResponse,
    ReservationResultResponse,
    ReservationsListResponse,
)
from studio_crm.routes.errors import to_http_error
from studio_crm.utils.audit_helpers import audit_operator_action

router = APIRouter(prefix="/reservations", tags=["reservations"])


def reservation_response(reservation: Reservation) -> ReservationResponse:
    return ReservationResponse(
        id=reservation.id,
        contact_id=reservation.contact_id,
        customer_name=reservation.customer_name,
        external_id=reservation.external_id,
        date_time=reservation.date_time,
        date_only=reservation.date_only,
        type=reservation.type,
        service_name=reservation.service_name,
        custom_type_label=reservation.custom_type_label,
        status=reservation.status,
        notified=reservation.notified,
        note=reservation.note,
    )


def outcome_response(outcome: TriggerOutcome) -> NotificationOutcomeResponse:
    return NotificationOutcomeResponse(
        attempted=outcome.attempted,
        delivered=outcome.delivered,
        status=outcome.log_entry.status if outcome.log_entry else None,
        error=outcome.error,
    )


def result_response(result: ReservationResult) -> ReservationResultResponse:
    return ReservationResultResponse(
        reservation=reservation_response(result.reservation),
        notification=outcome_response(result.notification),
    )


@router.get("", response_model=ReservationsListResponse)
async def list_reservations(
    day: date | None = Query(default=None, description="Only reservations on this local day"),
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        reservations = await services.reservations.list_reservations(day)
    except Exception as e:
        raise to_http_error(e, "list reservations") from e
    return ReservationsListResponse(
        reservations=[reservation_response(r) for r in reservations],
        total_count=len(reservations),
    )


@router.post("", response_model=ReservationResultResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    body: CreateReservationRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        result = await services.reservations.create_reservation(
            contact_id=body.contact_id,
            date_time=body.date_time,
            reservation_type=body.type,
            operator=operator.name,
            custom_type_label=body.custom_type_label,
            note=body.note,
        )
    except Exception as e:
        raise to_http_error(e, "create reservation", contact_id=body.contact_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="reservation_created",
        resource_type="reservation",
        resource_id=result.reservation.id,
        metadata={"notification_delivered": result.notification.delivered},
    )
    return result_response(result)


@router.post("/test-notification", response_model=NotificationCheckResponse)
async def send_test_notification(
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    """Post a connection-test payload to the automation webhook."""
    delivered = await services.trigger.send_test_notification(operator.name)
    return NotificationCheckResponse(
        delivered=delivered, webhook_configured=bool(services.trigger.webhook_url)
    )


@router.put("/{reservation_id}", response_model=ReservationResultResponse)
async def update_reservation(
    reservation_id: str,
    body: UpdateReservationRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        result = await services.reservations.update_reservation(
            reservation_id,
            date_time=body.date_time,
            reservation_type=body.type,
            operator=operator.name,
            custom_type_label=body.custom_type_label,
            note=body.note,
        )
    except Exception as e:
        raise to_http_error(e, "update reservation", reservation_id=reservation_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="reservation_rescheduled",
        resource_type="reservation",
        resource_id=reservation_id,
        metadata={"notification_delivered": result.notification.delivered},
    )
    return result_response(result)


@router.post("/{reservation_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reservation(
    reservation_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        await services.reservations.cancel_reservation(reservation_id)
    except Exception as e:
        raise to_http_error(e, "cancel reservation", reservation_id=reservation_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="reservation_cancelled",
        resource_type="reservation",
        resource_id=reservation_id,
    )
