"""
Audit Service - append-only record of pipeline activity.

Usage:
    from contract_analysis.services.audit_service import audit_service

    audit_service.record(
        AuditAction.ANALYSIS_STARTED,
        user_id=user.id,
        document_id=document.id,
        details={"analysisId": analysis.id},
    )

Entries are written through a session of their own, never the caller's, so
an audit failure cannot roll back or poison the request's transaction.
Failures are logged and discarded.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from contract_analysis.database import SessionLocal
from contract_analysis.models.audit import AuditLog, AuditAction
from contract_analysis.utils.security import get_request_context, scrub_pii_from_object

logger = logging.getLogger(__name__)


class AuditService:
    """
    Fire-and-forget audit writer.

    Request metadata (request id, IP, user agent) is taken from the context
    bound by AuditMiddleware unless passed explicitly.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def record(
        self,
        action: AuditAction,
        user_id: Optional[str] = None,
        document_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[int]:
        """
        Write an audit entry.

        Returns:
            ID of the created entry, or None if the write failed
        """
        context = get_request_context()
        try:
            db = self.session_factory()
            try:
                entry = AuditLog(
                    action=action.value if isinstance(action, AuditAction) else action,
                    user_id=user_id,
                    document_id=document_id,
                    details=details,
                    request_id=context.get("request_id"),
                    ip_address=ip_address or context.get("ip_address"),
                    user_agent=(user_agent or context.get("user_agent") or None),
                )
                db.add(entry)
                db.commit()
                return entry.id
            finally:
                db.close()
        except Exception as e:
            # Never let audit logging break the main flow
            logger.error(
                f"Failed to write audit log {action}: {e} "
                f"details={scrub_pii_from_object(details)}"
            )
            return None

    def get_logs(
        self,
        user_id: Optional[str] = None,
        document_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        """Query audit entries, newest first."""
        db = self.session_factory()
        try:
            query = db.query(AuditLog)
            if user_id:
                query = query.filter(AuditLog.user_id == user_id)
            if document_id:
                query = query.filter(AuditLog.document_id == document_id)
            if action:
                query = query.filter(
                    AuditLog.action == (action.value if isinstance(action, AuditAction) else action)
                )
            if since:
                query = query.filter(AuditLog.timestamp >= since)
            return query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit).all()
        finally:
            db.close()


# Singleton instance
audit_service = AuditService()


def get_audit_service() -> AuditService:
    """FastAPI dependency returning the shared audit service."""
    return audit_service
