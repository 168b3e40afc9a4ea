"""
Audit Helper Utilities - one-line audit logging for endpoints.

Usage:
    from studio_crm.utils.audit_helpers import audit_operator_action

    await audit_operator_action(
        request=request,
        operator=operator,
        action="contact_deleted",
        resource_type="customer",
        resource_id=contact_id,
    )

Request context (IP, user agent, request ID) is read from request.state,
and the AuditLogger from the service container on app.state.
"""

from typing import Any

from fastapi import Request

from studio_crm.auth.verify import Operator


async def audit_operator_action(
    request: Request,
    operator: Operator,
    action: str,
    resource_type: str,
    resource_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """
    Record an operator action on customer data.

    Returns:
        True if stored in the datastore, False otherwise (never raises)
    """
    audit = request.app.state.services.audit
    return await audit.log(
        operator=operator.name,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        ip_address=getattr(request.state, "ip_address", None),
        user_agent=getattr(request.state, "user_agent", None),
        request_id=getattr(request.state, "request_id", None),
        metadata={"operator_id": operator.id, **(metadata or {})},
    )
