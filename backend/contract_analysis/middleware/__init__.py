"""
Middleware package.
"""
from contract_analysis.middleware.audit_middleware import AuditMiddleware

__all__ = ["AuditMiddleware"]
