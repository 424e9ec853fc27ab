"""
Entitlement checks based on the organization's subscription plan.

A user acts through their default organization. Organizations without an
ACTIVE subscription get the free tier. Limits come from PLAN_LIMITS; nothing
here branches on plan names.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from contract_analysis.database import get_db, utcnow
from contract_analysis.models.analysis import Analysis, AnalysisStatus
from contract_analysis.models.document import Document
from contract_analysis.models.subscription import (
    MB,
    Plan,
    PlanLimits,
    Subscription,
    SubscriptionStatus,
    get_plan_limits,
)
from contract_analysis.models.user import Organization, User

logger = logging.getLogger(__name__)

NO_ORGANIZATION = "No organization found"


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: Optional[str] = None


def start_of_month(now: Optional[datetime] = None) -> datetime:
    """First instant of the current calendar month in UTC."""
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _format_mb(size_bytes: int) -> int:
    # Half-up rounding to whole megabytes
    return int(math.floor(size_bytes / MB + 0.5))


class EntitlementService:
    """Answers "may this user do X" questions for the pipeline."""

    def __init__(self, db: Session):
        self.db = db

    # ========== Resolution ==========

    def _resolve_org(self, user: User) -> Optional[Organization]:
        return user.default_org

    def _active_subscription(self, org: Organization) -> Optional[Subscription]:
        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.org_id == org.id)
            .first()
        )
        if subscription and subscription.status == SubscriptionStatus.ACTIVE.value:
            return subscription
        return None

    def _plan_for(self, org: Organization) -> Plan:
        subscription = self._active_subscription(org)
        if subscription is None:
            return Plan.FREE
        try:
            return Plan(subscription.plan)
        except ValueError:
            logger.warning(f"Unknown plan {subscription.plan!r} for org {org.id}, using FREE")
            return Plan.FREE

    def get_entitlement_limits(self, user: User) -> Optional[PlanLimits]:
        """Limits for the user's default org, or None when the user has no org."""
        org = self._resolve_org(user)
        if org is None:
            return None
        return get_plan_limits(self._plan_for(org))

    def get_monthly_analysis_count(self, org_id: str) -> int:
        """Analyses (PROCESSING or COMPLETED) on the org's documents this month."""
        return (
            self.db.query(Analysis)
            .join(Document, Analysis.document_id == Document.id)
            .filter(
                Document.org_id == org_id,
                Analysis.created_at >= start_of_month(),
                Analysis.status.in_([AnalysisStatus.COMPLETED.value, AnalysisStatus.PROCESSING.value]),
            )
            .count()
        )

    # ========== Checks ==========

    def can_perform_analysis(self, user: User) -> EntitlementDecision:
        org = self._resolve_org(user)
        if org is None:
            return EntitlementDecision(False, NO_ORGANIZATION)

        limits = get_plan_limits(self._plan_for(org))
        if limits.max_analyses_per_month is None:
            return EntitlementDecision(True)

        used = self.get_monthly_analysis_count(org.id)
        if used >= limits.max_analyses_per_month:
            return EntitlementDecision(
                False,
                f"Monthly limit of {limits.max_analyses_per_month} analyses reached. "
                "Upgrade your plan for more analyses.",
            )
        return EntitlementDecision(True)

    def can_export_reports(self, user: User) -> EntitlementDecision:
        limits = self.get_entitlement_limits(user)
        if limits is None:
            return EntitlementDecision(False, NO_ORGANIZATION)
        if not limits.has_export_access:
            return EntitlementDecision(
                False,
                "Export access requires a paid plan. Please upgrade to access report exports.",
            )
        return EntitlementDecision(True)

    def is_document_size_allowed(self, user: User, size_bytes: int) -> EntitlementDecision:
        limits = self.get_entitlement_limits(user)
        if limits is None:
            return EntitlementDecision(False, NO_ORGANIZATION)
        if size_bytes > limits.max_document_size:
            return EntitlementDecision(
                False,
                f"File size {_format_mb(size_bytes)}MB exceeds limit of "
                f"{_format_mb(limits.max_document_size)}MB for your plan. "
                "Please upgrade for larger file support.",
            )
        return EntitlementDecision(True)

    def get_entitlement_snapshot(self, user: User) -> Dict[str, Any]:
        """Plan, status, limits and this month's usage for the user's org."""
        org = self._resolve_org(user)
        if org is None:
            return {
                "plan": Plan.FREE.value,
                "status": SubscriptionStatus.INACTIVE.value,
                "hasActiveSubscription": False,
                "limits": get_plan_limits(Plan.FREE).to_dict(),
                "usage": {"analysesThisMonth": 0},
            }

        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.org_id == org.id)
            .first()
        )
        plan = self._plan_for(org)
        return {
            "organizationId": org.id,
            "plan": plan.value,
            "status": subscription.status if subscription else SubscriptionStatus.INACTIVE.value,
            "hasActiveSubscription": bool(subscription and subscription.is_active),
            "currentPeriodEnd": (
                subscription.current_period_end.isoformat()
                if subscription and subscription.current_period_end
                else None
            ),
            "cancelAtPeriodEnd": bool(subscription and subscription.cancel_at_period_end),
            "limits": get_plan_limits(plan).to_dict(),
            "usage": {"analysesThisMonth": self.get_monthly_analysis_count(org.id)},
        }


def get_entitlement_service(db: Session = Depends(get_db)) -> EntitlementService:
    return EntitlementService(db)
