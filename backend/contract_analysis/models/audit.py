"""
Audit Log Model - append-only trace of pipeline activity.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB

from contract_analysis.database import Base, utcnow


class AuditAction(str, Enum):
    """Actions recorded in the audit log"""
    DOCUMENT_UPLOADED = "document_uploaded"
    ANALYSIS_STARTED = "analysis_started"
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"
    REPORT_GENERATED = "report_generated"


class AuditLog(Base):
    """
    Central audit log for pipeline activity.

    Rows are only ever inserted. Identifiers are kept as plain strings so an
    entry can outlive or predate the rows it mentions.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Who / on what
    user_id = Column(String(36), nullable=True, index=True)
    document_id = Column(String(36), nullable=True, index=True)

    # What
    action = Column(String(50), nullable=False, index=True)
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # Request context
    request_id = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_audit_document_timestamp", "document_id", "timestamp"),
        Index("ix_audit_user_action", "user_id", "action"),
    )

    def __repr__(self):
        return f"<AuditLog {self.id} {self.action} by {self.user_id}>"
