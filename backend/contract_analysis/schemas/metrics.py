"""
Pydantic schemas for dashboard metrics and entitlements.
"""
from typing import Optional

from contract_analysis.schemas.analysis import CamelModel


class RiskDistribution(CamelModel):
    low: int = 0
    medium: int = 0
    high: int = 0


class MetricsResponse(CamelModel):
    total_documents: int
    total_analyses: int
    completed_analyses: int
    avg_risk_score: int
    recent_documents: int
    success_rate: float
    risk_distribution: RiskDistribution


class PlanLimitsOut(CamelModel):
    max_analyses_per_month: Optional[int] = None
    max_document_size: int
    has_export_access: bool
    has_priority_support: bool
    has_advanced_analytics: bool


class UsageOut(CamelModel):
    analyses_this_month: int


class EntitlementResponse(CamelModel):
    organization_id: Optional[str] = None
    plan: str
    status: str
    has_active_subscription: bool
    current_period_end: Optional[str] = None
    cancel_at_period_end: bool = False
    limits: PlanLimitsOut
    usage: UsageOut
