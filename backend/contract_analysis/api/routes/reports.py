"""
Report export route.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from contract_analysis.models.user import User
from contract_analysis.services.report_service import ReportService, get_report_service
from contract_analysis.utils.dependencies import require_auth

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/{analysis_id}")
def export_report(
    analysis_id: str,
    format: str = Query("pdf", description="csv or pdf (printable HTML)"),
    current_user: User = Depends(require_auth),
    reports: ReportService = Depends(get_report_service),
):
    """Download an analysis as CSV or printable HTML. Requires a paid plan."""
    report = reports.export(current_user, analysis_id, format)
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )
