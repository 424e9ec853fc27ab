"""
Analysis orchestration.

Runs one analysis request end to end:

    validate -> access guard -> entitlement -> idempotency lookup
    -> create PROCESSING row -> provider -> persist COMPLETED + findings
    -> audit -> normalized result

A completed analysis is returned as-is on repeat requests. Concurrent
requests for the same document are serialized by the partial unique index on
analyses.document_id: the loser sees an IntegrityError and either returns the
winner's completed analysis or gets 409 analysis_in_progress.
"""
import logging
from typing import Optional, Tuple

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contract_analysis.database import get_db
from contract_analysis.exceptions import (
    AnalysisFailedError,
    AnalysisInProgressError,
    AnalysisNotFoundError,
    DocumentNotFoundError,
    EntitlementExceededError,
    ValidationFailedError,
)
from contract_analysis.models.analysis import (
    MAX_FINDINGS,
    Analysis,
    AnalysisStatus,
    Finding,
)
from contract_analysis.models.audit import AuditAction
from contract_analysis.models.document import Document
from contract_analysis.models.user import User
from contract_analysis.schemas.analysis import AnalysisRequest, AnalysisResult
from contract_analysis.services.ai_provider import AIProviderAdapter, get_ai_provider
from contract_analysis.services.audit_service import AuditService, get_audit_service
from contract_analysis.services.document_service import DocumentService
from contract_analysis.services.entitlement_service import EntitlementService
from contract_analysis.utils.security import scrub_pii

logger = logging.getLogger(__name__)


def to_result(analysis: Analysis) -> AnalysisResult:
    return AnalysisResult.model_validate(analysis)


class AnalysisOrchestrator:
    """Drives an Analysis from request to terminal state."""

    def __init__(
        self,
        db: Session,
        provider: AIProviderAdapter,
        audit: AuditService,
        entitlements: Optional[EntitlementService] = None,
        documents: Optional[DocumentService] = None,
    ):
        self.db = db
        self.provider = provider
        self.audit = audit
        self.entitlements = entitlements or EntitlementService(db)
        self.documents = documents or DocumentService(db)

    # ========== Lookups ==========

    def _find_by_status(self, document_id: str, *statuses: AnalysisStatus) -> Optional[Analysis]:
        return (
            self.db.query(Analysis)
            .filter(
                Analysis.document_id == document_id,
                Analysis.status.in_([s.value for s in statuses]),
            )
            .order_by(Analysis.created_at.desc())
            .first()
        )

    def find_completed(self, document_id: str) -> Optional[Analysis]:
        return self._find_by_status(document_id, AnalysisStatus.COMPLETED)

    def get_analysis(self, user: User, analysis_id: str) -> AnalysisResult:
        analysis = self.documents.find_accessible_analysis(analysis_id, user.id)
        if analysis is None:
            raise AnalysisNotFoundError()
        return to_result(analysis)

    # ========== Pipeline ==========

    def _start(self, document: Document) -> Tuple[Analysis, bool]:
        """
        Insert the PROCESSING row.

        Returns:
            (analysis, created); created is False when a concurrent request
            already completed the document
        """
        analysis = Analysis(document_id=document.id, status=AnalysisStatus.PROCESSING.value)
        self.db.add(analysis)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            current = self._find_by_status(
                document.id, AnalysisStatus.COMPLETED, AnalysisStatus.PROCESSING
            )
            if current is not None and current.status == AnalysisStatus.COMPLETED.value:
                logger.info(f"Document {document.id} completed by a concurrent request")
                return current, False
            raise AnalysisInProgressError()

        self.db.refresh(analysis)
        return analysis, True

    def _mark_failed(self, analysis_id: str) -> None:
        try:
            analysis = self.db.get(Analysis, analysis_id)
            if analysis is not None and analysis.status == AnalysisStatus.PROCESSING.value:
                analysis.fail()
                self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Could not mark analysis {analysis_id} as failed: {e}")

    def run_analysis(self, user: User, request: AnalysisRequest) -> AnalysisResult:
        document_id = request.document_id.strip() if request.document_id else ""
        if not document_id:
            raise ValidationFailedError(
                [{"field": "documentId", "message": "documentId is required"}]
            )

        document = self.documents.find_accessible_document(document_id, user.id)
        if document is None:
            raise DocumentNotFoundError()

        decision = self.entitlements.can_perform_analysis(user)
        if not decision.allowed:
            raise EntitlementExceededError(decision.reason)

        existing = self.find_completed(document.id)
        if existing is not None:
            logger.info(f"Returning existing analysis {existing.id} for document {document.id}")
            return to_result(existing)

        analysis, created = self._start(document)
        if not created:
            return to_result(analysis)

        analysis_id = analysis.id
        self.audit.record(
            AuditAction.ANALYSIS_STARTED,
            user_id=user.id,
            document_id=document.id,
            details={"analysisId": analysis_id},
        )

        try:
            outcome = self.provider.analyze(
                document_id=document.id,
                document_name=request.document_name or document.original_name,
                category=request.category,
                text=request.text,
            )

            analysis.complete(outcome.risk_score, outcome.summary)
            for position, finding in enumerate(outcome.findings[:MAX_FINDINGS]):
                self.db.add(
                    Finding(
                        analysis_id=analysis_id,
                        position=position,
                        type=finding.type.value,
                        severity=finding.severity.value,
                        title=finding.title,
                        description=finding.description,
                        location=finding.location,
                        suggestion=finding.suggestion,
                    )
                )
            self.db.commit()
            self.db.refresh(analysis)
        except Exception as e:
            self.db.rollback()
            self._mark_failed(analysis_id)
            self.audit.record(
                AuditAction.ANALYSIS_FAILED,
                user_id=user.id,
                document_id=document_id,
                details={"analysisId": analysis_id, "error": scrub_pii(str(e))},
            )
            logger.error(
                f"Analysis {analysis_id} failed for document {document_id}: {scrub_pii(str(e))}",
                exc_info=True,
            )
            raise AnalysisFailedError()

        self.audit.record(
            AuditAction.ANALYSIS_COMPLETED,
            user_id=user.id,
            document_id=document.id,
            details={
                "analysisId": analysis_id,
                "riskScore": analysis.risk_score,
                "findingsCount": len(analysis.findings),
                "source": outcome.source,
            },
        )
        logger.info(
            f"Analysis {analysis_id} completed: risk {analysis.risk_score}, "
            f"{len(analysis.findings)} findings ({outcome.source})"
        )
        return to_result(analysis)


def get_analysis_orchestrator(
    db: Session = Depends(get_db),
    provider: AIProviderAdapter = Depends(get_ai_provider),
    audit: AuditService = Depends(get_audit_service),
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(db, provider, audit)
