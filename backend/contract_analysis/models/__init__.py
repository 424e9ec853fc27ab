"""
Database models package.
Import all models to ensure they are registered with SQLAlchemy.
"""
from contract_analysis.models.user import User, Organization, OrgMembership, OrgRole
from contract_analysis.models.subscription import (
    MB,
    Subscription,
    SubscriptionStatus,
    Plan,
    PlanLimits,
    PLAN_LIMITS,
    get_plan_limits,
)
from contract_analysis.models.document import Document, DocumentStatus
from contract_analysis.models.analysis import (
    Analysis,
    AnalysisStatus,
    Finding,
    FindingType,
    FindingSeverity,
    MAX_FINDINGS,
    FINDING_FIELD_MAX_LENGTH,
    TRANSITIONS,
    clamp_risk_score,
)
from contract_analysis.models.audit import AuditLog, AuditAction

__all__ = [
    # Tenancy
    "User",
    "Organization",
    "OrgMembership",
    "OrgRole",
    # Billing
    "MB",
    "Subscription",
    "SubscriptionStatus",
    "Plan",
    "PlanLimits",
    "PLAN_LIMITS",
    "get_plan_limits",
    # Documents & analyses
    "Document",
    "DocumentStatus",
    "Analysis",
    "AnalysisStatus",
    "Finding",
    "FindingType",
    "FindingSeverity",
    "MAX_FINDINGS",
    "FINDING_FIELD_MAX_LENGTH",
    "TRANSITIONS",
    "clamp_risk_score",
    # Audit
    "AuditLog",
    "AuditAction",
]
