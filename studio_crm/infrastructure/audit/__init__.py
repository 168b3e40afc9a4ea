"""
Audit logging infrastructure for operator actions on customer data.
"""

from studio_crm.infrastructure.audit.audit_logger import AuditLogger

__all__ = ["AuditLogger"]
