"""
Public join capture used by the landing page after the chat-platform login.
No operator token is required.
"""

from fastapi import APIRouter, Depends

from studio_crm.dependencies import ServiceContainer, get_services
from studio_crm.models.api.crm_request import JoinRequest
from studio_crm.models.api.crm_response import JoinResponse
from studio_crm.routes.errors import to_http_error

router = APIRouter(tags=["join"])


@router.post("/join", response_model=JoinResponse)
async def record_join(body: JoinRequest, services: ServiceContainer = Depends(get_services)):
    try:
        result = await services.joins.record_join(
            external_id=body.user_id,
            display_name=body.display_name,
            avatar_url=body.picture_url,
            source=body.source,
        )
    except Exception as e:
        raise to_http_error(e, "record join") from e

    return JoinResponse(
        connection_id=result.connection.id,
        first_visit=result.first_visit,
        source=result.connection.source,
    )
