# studio_crm/models/api/crm_response.py
"""
CRM API response models.
Used by routes for output formatting.
"""

from pydantic import BaseModel, Field


class ConnectionResponse(BaseModel):
    """A chat-platform connection."""

    id: str = Field(..., description="Connection ID")
    external_id: str = Field(..., description="Chat-platform user id")
    display_name: str = Field(default="", description="Profile display name")
    avatar_url: str = Field(default="", description="Profile picture URL")
    is_bound: bool = Field(..., description="Claimed by a contact")
    is_blocked: bool = Field(..., description="User has blocked the account")
    timestamp: int | None = Field(None, description="First seen, epoch ms")
    source: str = Field(default="", description="Source tag")


class InboxResponse(BaseModel):
    connections: list[ConnectionResponse]
    total_count: int


class ContactResponse(BaseModel):
    """A CRM contact."""

    id: str
    name: str
    phone: str = ""
    address: str = ""
    tags: list[str] = Field(default_factory=list)
    external_id: str = Field(default="", description="Linked chat identity, empty if unlinked")
    external_display_name: str = ""
    avatar_url: str = ""
    is_linked: bool = False
    created_at: int | None = None


class ContactsListResponse(BaseModel):
    contacts: list[ContactResponse]
    total_count: int


class BindResponse(BaseModel):
    contact: ContactResponse
    connection: ConnectionResponse


class UnlinkResponse(BaseModel):
    contact_id: str
    previous_external_id: str
    released_connection_ids: list[str] = Field(default_factory=list)


class NotificationOutcomeResponse(BaseModel):
    """What happened to the reservation notification."""

    attempted: bool
    delivered: bool
    status: str | None = Field(None, description="Log status: sent, skipped or failed")
    error: str | None = None


class ReservationResponse(BaseModel):
    id: str
    contact_id: str
    customer_name: str
    external_id: str = ""
    date_time: str
    date_only: str
    type: str
    service_name: str
    custom_type_label: str | None = None
    status: str
    notified: bool
    note: str = ""


class ReservationsListResponse(BaseModel):
    reservations: list[ReservationResponse]
    total_count: int


class ReservationResultResponse(BaseModel):
    reservation: ReservationResponse
    notification: NotificationOutcomeResponse


class NotificationCheckResponse(BaseModel):
    delivered: bool
    webhook_configured: bool


class JoinResponse(BaseModel):
    connection_id: str
    first_visit: bool
    source: str
