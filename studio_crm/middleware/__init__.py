"""
HTTP middleware for the studio CRM backend.
"""

from studio_crm.middleware.request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
