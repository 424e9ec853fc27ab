"""
Billing routes - entitlement snapshot for the current user's organization.

Checkout and payment-provider webhooks are handled by the billing service,
not here.
"""
from fastapi import APIRouter, Depends

from contract_analysis.models.user import User
from contract_analysis.schemas.metrics import EntitlementResponse
from contract_analysis.services.entitlement_service import EntitlementService, get_entitlement_service
from contract_analysis.utils.dependencies import require_auth

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/entitlements", response_model=EntitlementResponse)
def get_entitlements(
    current_user: User = Depends(require_auth),
    entitlements: EntitlementService = Depends(get_entitlement_service),
):
    """Plan, limits and this month's usage."""
    return entitlements.get_entitlement_snapshot(current_user)
