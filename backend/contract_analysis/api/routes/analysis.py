"""
Analysis routes - run and fetch contract risk analyses.
"""
from fastapi import APIRouter, Depends

from contract_analysis.models.user import User
from contract_analysis.rate_limiter import RateLimitResult, RateLimits, rate_limit
from contract_analysis.schemas.analysis import AnalysisRequest, AnalysisResult
from contract_analysis.services.analysis_service import (
    AnalysisOrchestrator,
    get_analysis_orchestrator,
)
from contract_analysis.utils.dependencies import require_auth

router = APIRouter(prefix="/analysis", tags=["Analysis"])


@router.post("", response_model=AnalysisResult)
def create_analysis(
    payload: AnalysisRequest,
    current_user: User = Depends(require_auth),
    _rate: RateLimitResult = Depends(rate_limit(RateLimits.ANALYSIS)),
    orchestrator: AnalysisOrchestrator = Depends(get_analysis_orchestrator),
):
    """
    Analyze a document.

    Repeat requests for an already analyzed document return the stored
    result without calling the AI provider again.
    """
    return orchestrator.run_analysis(current_user, payload)


@router.get("/{analysis_id}", response_model=AnalysisResult)
def get_analysis(
    analysis_id: str,
    current_user: User = Depends(require_auth),
    orchestrator: AnalysisOrchestrator = Depends(get_analysis_orchestrator),
):
    return orchestrator.get_analysis(current_user, analysis_id)
