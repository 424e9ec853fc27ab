"""
Subscription model and plan limits.

Plans are mapped to their limits declaratively in PLAN_LIMITS; entitlement
checks read this table and never branch on plan names themselves.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from contract_analysis.database import Base, generate_uuid, utcnow

MB = 1024 * 1024


class Plan(str, enum.Enum):
    """Subscription plans."""
    FREE = "FREE"
    PAY_PER_CONTRACT = "PAY_PER_CONTRACT"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, enum.Enum):
    """Billing status as mirrored from the payment provider."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


@dataclass(frozen=True)
class PlanLimits:
    """Quotas and feature flags granted by a plan."""
    max_analyses_per_month: Optional[int]  # None = unlimited
    max_document_size: int  # bytes
    has_export_access: bool
    has_priority_support: bool
    has_advanced_analytics: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "maxAnalysesPerMonth": self.max_analyses_per_month,
            "maxDocumentSize": self.max_document_size,
            "hasExportAccess": self.has_export_access,
            "hasPrioritySupport": self.has_priority_support,
            "hasAdvancedAnalytics": self.has_advanced_analytics,
        }


PLAN_LIMITS: Dict[Plan, PlanLimits] = {
    Plan.FREE: PlanLimits(
        max_analyses_per_month=3,
        max_document_size=10 * MB,
        has_export_access=False,
        has_priority_support=False,
        has_advanced_analytics=False,
    ),
    # Billed per analysis, so no monthly cap
    Plan.PAY_PER_CONTRACT: PlanLimits(
        max_analyses_per_month=None,
        max_document_size=50 * MB,
        has_export_access=True,
        has_priority_support=False,
        has_advanced_analytics=False,
    ),
    Plan.PROFESSIONAL: PlanLimits(
        max_analyses_per_month=100,
        max_document_size=100 * MB,
        has_export_access=True,
        has_priority_support=True,
        has_advanced_analytics=True,
    ),
    Plan.ENTERPRISE: PlanLimits(
        max_analyses_per_month=None,
        max_document_size=500 * MB,
        has_export_access=True,
        has_priority_support=True,
        has_advanced_analytics=True,
    ),
}


def get_plan_limits(plan) -> PlanLimits:
    """Get limits for a plan; unknown plans get the free tier."""
    try:
        return PLAN_LIMITS[Plan(plan)]
    except ValueError:
        return PLAN_LIMITS[Plan.FREE]


class Subscription(Base):
    """An organization's subscription, one per organization."""

    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), unique=True, nullable=False)
    plan = Column(String(30), default=Plan.FREE.value, nullable=False)
    status = Column(String(20), default=SubscriptionStatus.INACTIVE.value, nullable=False)
    current_period_end = Column(DateTime(timezone=True))
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    stripe_customer_id = Column(String(255))
    stripe_subscription_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    org = relationship("Organization", back_populates="subscription")

    def __repr__(self):
        return f"<Subscription {self.org_id} {self.plan} ({self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value
