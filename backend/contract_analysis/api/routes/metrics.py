"""
Dashboard metrics route.
"""
import logging

from fastapi import APIRouter, Depends

from contract_analysis.exceptions import MetricsFailedError
from contract_analysis.models.user import User
from contract_analysis.schemas.metrics import MetricsResponse
from contract_analysis.services.metrics_service import MetricsService, get_metrics_service
from contract_analysis.utils.dependencies import require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("", response_model=MetricsResponse)
def get_metrics(
    current_user: User = Depends(require_auth),
    metrics: MetricsService = Depends(get_metrics_service),
):
    try:
        return metrics.get_metrics(current_user)
    except Exception as e:
        logger.error(f"Metrics computation failed for user {current_user.id}: {e}", exc_info=True)
        raise MetricsFailedError()
