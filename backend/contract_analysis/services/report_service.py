"""
Report export for completed analyses.

CSV: one quoted row per finding (or a single SUMMARY row when there are
none). "pdf": a printable HTML document rendered from templates/report.html;
conversion to PDF is left to the client.
"""
import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Depends
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from contract_analysis.database import get_db, utcnow
from contract_analysis.exceptions import (
    AnalysisNotFoundError,
    ExportNotAllowedError,
    ReportFailedError,
    ValidationFailedError,
)
from contract_analysis.models.analysis import Analysis
from contract_analysis.models.audit import AuditAction
from contract_analysis.models.user import User
from contract_analysis.services.audit_service import AuditService, get_audit_service
from contract_analysis.services.document_service import DocumentService
from contract_analysis.services.entitlement_service import EntitlementService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

SUPPORTED_FORMATS = ("csv", "pdf")

CSV_HEADER = [
    "Document",
    "Analysis Date",
    "Risk Score",
    "Status",
    "Finding Type",
    "Severity",
    "Title",
    "Description",
    "Suggestion",
]


@dataclass(frozen=True)
class GeneratedReport:
    content: str
    media_type: str
    filename: str


def risk_class(risk_score: Optional[int]) -> str:
    """CSS band for a risk score; a missing score counts as low."""
    if not risk_score or risk_score <= 30:
        return "risk-low"
    if risk_score <= 70:
        return "risk-medium"
    return "risk-high"


def _build_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


class ReportGenerator:
    """Renders an analysis into a downloadable report."""

    def __init__(self):
        self.env = _build_env()

    def generate(self, analysis: Analysis, format: str = "pdf") -> GeneratedReport:
        if format == "csv":
            return self.generate_csv(analysis)
        if format == "pdf":
            return self.generate_html(analysis)
        raise ValueError(f"Unsupported report format: {format}")

    def generate_csv(self, analysis: Analysis) -> GeneratedReport:
        completed_at = analysis.completed_at.isoformat() if analysis.completed_at else ""
        risk_score = str(analysis.risk_score) if analysis.risk_score is not None else ""
        document_name = analysis.document.original_name

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for finding in analysis.findings:
            writer.writerow([
                document_name,
                completed_at,
                risk_score,
                analysis.status,
                finding.type,
                finding.severity,
                finding.title,
                finding.description,
                finding.suggestion or "",
            ])
        if not analysis.findings:
            writer.writerow([
                document_name,
                completed_at,
                risk_score,
                analysis.status,
                "SUMMARY",
                "INFO",
                "Analysis Complete",
                analysis.summary or "No specific findings identified",
                "",
            ])

        return GeneratedReport(
            content=buffer.getvalue(),
            media_type="text/csv",
            filename=f"analysis-{analysis.id}.csv",
        )

    def generate_html(self, analysis: Analysis) -> GeneratedReport:
        document = analysis.document
        uploader = document.uploader
        template = self.env.get_template("report.html")
        html = template.render(
            generated_on=utcnow().strftime("%Y-%m-%d"),
            document_name=document.original_name,
            organization=document.org.name if document.org else "",
            uploader=(uploader.name or uploader.email) if uploader else "",
            analysis_date=analysis.completed_at.strftime("%Y-%m-%d") if analysis.completed_at else "N/A",
            status=analysis.status,
            risk_score=analysis.risk_score,
            risk_class=risk_class(analysis.risk_score),
            summary=analysis.summary,
            findings=analysis.findings,
        )
        return GeneratedReport(
            content=html,
            media_type="text/html",
            filename=f"analysis-{analysis.id}.html",
        )


class ReportService:
    """Entitlement-gated report export with audit trail."""

    def __init__(self, db: Session, audit: AuditService, generator: Optional[ReportGenerator] = None):
        self.db = db
        self.audit = audit
        self.generator = generator or ReportGenerator()
        self.entitlements = EntitlementService(db)
        self.documents = DocumentService(db)

    def export(self, user: User, analysis_id: str, format: str = "pdf") -> GeneratedReport:
        decision = self.entitlements.can_export_reports(user)
        if not decision.allowed:
            raise ExportNotAllowedError(decision.reason)

        if format not in SUPPORTED_FORMATS:
            raise ValidationFailedError(
                [{"field": "format", "message": f"format must be one of: {', '.join(SUPPORTED_FORMATS)}"}]
            )

        analysis = self.documents.find_accessible_analysis(analysis_id, user.id)
        if analysis is None:
            raise AnalysisNotFoundError()

        try:
            report = self.generator.generate(analysis, format)
        except Exception as e:
            logger.error(f"Report generation failed for analysis {analysis_id}: {e}", exc_info=True)
            raise ReportFailedError()

        self.audit.record(
            AuditAction.REPORT_GENERATED,
            user_id=user.id,
            document_id=analysis.document_id,
            details={
                "analysisId": analysis.id,
                "format": format,
                "orgId": analysis.document.org_id,
            },
        )
        return report


def get_report_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service),
) -> ReportService:
    return ReportService(db, audit)
