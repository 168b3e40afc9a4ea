"""
CRM routes: the pending inbox, contact management and identity linking.
"""

from fastapi import APIRouter, Depends, Query, Request, Response, status

from studio_crm.auth.verify import Operator, get_operator
from studio_crm.dependencies import ServiceContainer, get_services
from studio_crm.features.crm.domain.models import Contact, InboundConnection
from studio_crm.infrastructure.observability.logging import get_logger
from studio_crm.models.api.crm_request import BindConnectionRequest, CreateContactRequest
from studio_crm.models.api.crm_response import (
    BindResponse,
    ConnectionResponse,
    ContactResponse,
    ContactsListResponse,
    InboxResponse,
    UnlinkResponse,
)
from studio_crm.routes.errors import to_http_error
from studio_crm.services.export_service import export_contacts_csv
from studio_crm.utils.audit_helpers import audit_operator_action

logger = get_logger(__name__)

router = APIRouter(prefix="/crm", tags=["crm"])


def connection_response(connection: InboundConnection) -> ConnectionResponse:
    return ConnectionResponse(
        id=connection.id,
        external_id=connection.external_id,
        display_name=connection.display_name,
        avatar_url=connection.avatar_url,
        is_bound=connection.is_bound,
        is_blocked=connection.is_blocked,
        timestamp=connection.timestamp,
        source=connection.source,
    )


def contact_response(contact: Contact) -> ContactResponse:
    return ContactResponse(
        id=contact.id,
        name=contact.name,
        phone=contact.phone,
        address=contact.address,
        tags=contact.tags,
        external_id=contact.external_id,
        external_display_name=contact.external_display_name,
        avatar_url=contact.avatar_url,
        is_linked=contact.is_linked,
        created_at=contact.created_at,
    )


@router.get("/inbox", response_model=InboxResponse)
async def get_pending_inbox(
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    """Connections not yet bound to, or claimed by, any contact."""
    pending = services.hub.pending_inbox()
    return InboxResponse(
        connections=[connection_response(c) for c in pending],
        total_count=len(pending),
    )


@router.post("/inbox/{connection_id}/bind", response_model=BindResponse)
async def bind_connection(
    connection_id: str,
    body: BindConnectionRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        result = await services.reconciliation.bind(connection_id, body.contact_id)
    except Exception as e:
        raise to_http_error(
            e, "bind connection", connection_id=connection_id, contact_id=body.contact_id
        ) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="connection_bound",
        resource_type="line_connection",
        resource_id=connection_id,
        metadata={"contact_id": body.contact_id},
    )
    return BindResponse(
        contact=contact_response(result.contact),
        connection=connection_response(result.connection),
    )


@router.post(
    "/inbox/{connection_id}/quick-create",
    response_model=ContactResponse,
    status_code=status.HTTP_201_CREATED,
)
async def quick_create_contact(
    connection_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        contact = await services.reconciliation.quick_create_and_bind(connection_id)
    except Exception as e:
        raise to_http_error(e, "quick-create contact", connection_id=connection_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="contact_quick_created",
        resource_type="customer",
        resource_id=contact.id,
        metadata={"connection_id": connection_id},
    )
    return contact_response(contact)


@router.get("/contacts", response_model=ContactsListResponse)
async def list_contacts(
    search: str = Query(default="", max_length=100, description="Name or phone substring"),
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        contacts = await services.contacts.list_contacts(search)
    except Exception as e:
        raise to_http_error(e, "list contacts") from e
    return ContactsListResponse(
        contacts=[contact_response(c) for c in contacts], total_count=len(contacts)
    )


@router.post("/contacts", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    body: CreateContactRequest,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        contact = await services.contacts.create_contact(
            name=body.name, phone=body.phone, address=body.address, tags=body.tags
        )
    except Exception as e:
        raise to_http_error(e, "create contact") from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="contact_created",
        resource_type="customer",
        resource_id=contact.id,
    )
    return contact_response(contact)


@router.get("/contacts/export.csv")
async def export_contacts(
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        contacts = await services.contacts.list_contacts()
    except Exception as e:
        raise to_http_error(e, "export contacts") from e

    logger.info("Contacts exported", operator=operator.name, count=len(contacts))
    return Response(
        content=export_contacts_csv(contacts, services.tz),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="contacts.csv"'},
    )


@router.post("/contacts/{contact_id}/unlink", response_model=UnlinkResponse)
async def unlink_contact(
    contact_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        result = await services.reconciliation.unlink(contact_id)
    except Exception as e:
        raise to_http_error(e, "unlink contact", contact_id=contact_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="contact_unlinked",
        resource_type="customer",
        resource_id=contact_id,
        metadata={"previous_external_id": result.previous_external_id},
    )
    return UnlinkResponse(
        contact_id=result.contact_id,
        previous_external_id=result.previous_external_id,
        released_connection_ids=result.released_connection_ids,
    )


@router.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    request: Request,
    services: ServiceContainer = Depends(get_services),
    operator: Operator = Depends(get_operator),
):
    try:
        await services.reconciliation.delete_contact(contact_id)
    except Exception as e:
        raise to_http_error(e, "delete contact", contact_id=contact_id) from e

    await audit_operator_action(
        request=request,
        operator=operator,
        action="contact_deleted",
        resource_type="customer",
        resource_id=contact_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
