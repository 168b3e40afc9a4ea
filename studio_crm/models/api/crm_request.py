# studio_crm/models/api/crm_request.py
"""
CRM API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, Field


class BindConnectionRequest(BaseModel):
    """Request for binding a pending connection to an existing contact."""

    contact_id: str = Field(..., min_length=1, description="Contact to link")


class CreateContactRequest(BaseModel):
    """Request for creating a contact by hand."""

    name: str = Field(..., min_length=1, max_length=100, description="Contact name")
    phone: str = Field(default="", max_length=50, description="Phone number")
    address: str = Field(default="", max_length=300, description="Address")
    tags: list[str] | str | None = Field(
        default=None, description="Tags as a list or a comma separated string"
    )


class JoinRequest(BaseModel):
    """Request sent by the public join landing page."""

    user_id: str = Field(..., min_length=1, description="Chat-platform user id")
    display_name: str = Field(default="", max_length=200, description="Profile display name")
    picture_url: str = Field(default="", max_length=1000, description="Profile picture URL")
    source: str | None = Field(default=None, max_length=100, description="Campaign source tag")


class CreateReservationRequest(BaseModel):
    """Request for creating a reservation."""

    contact_id: str = Field(..., min_length=1, description="Contact the reservation is for")
    date_time: str = Field(..., description="Local date-time, e.g. 2024-05-20T14:30")
    type: str = Field(..., description="Reservation type")
    custom_type_label: str | None = Field(
        default=None, max_length=50, description="Label when the type is 其他"
    )
    note: str = Field(default="", max_length=1000, description="Internal note")


class UpdateReservationRequest(BaseModel):
    """Request for rescheduling a reservation."""

    date_time: str = Field(..., description="New local date-time")
    type: str = Field(..., description="Reservation type")
    custom_type_label: str | None = Field(default=None, max_length=50)
    note: str | None = Field(default=None, max_length=1000)
