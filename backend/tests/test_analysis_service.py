"""
Tests for AnalysisOrchestrator.

Covers:
- Fallback run without a credential
- Findings cap and ordering
- Idempotent repeat requests
- Concurrent-request handling through the active-analysis index
- Failure path: ERROR status, audit entry, 500
"""
import json

import pytest

from contract_analysis.exceptions import (
    AnalysisFailedError,
    AnalysisInProgressError,
    DocumentNotFoundError,
    EntitlementExceededError,
    ValidationFailedError,
)
from contract_analysis.models import Analysis, AnalysisStatus, AuditAction, AuditLog, Finding
from contract_analysis.schemas.analysis import AnalysisRequest
from contract_analysis.services.ai_provider import AIProviderAdapter
from contract_analysis.services.analysis_service import AnalysisOrchestrator


@pytest.fixture
def owner(make_user):
    return make_user()


@pytest.fixture
def document(owner, make_document):
    return make_document(owner.default_org, owner)


def _orchestrator(db, audit, provider=None):
    return AnalysisOrchestrator(db, provider or AIProviderAdapter(api_key=None), audit)


def _request(document_id, **kwargs):
    return AnalysisRequest(document_id=document_id, **kwargs)


def _actions(db):
    db.expire_all()
    return [row.action for row in db.query(AuditLog).order_by(AuditLog.id).all()]


class TestRunAnalysis:

    def test_fallback_without_credential(self, db, audit, owner, document):
        result = _orchestrator(db, audit).run_analysis(owner, _request(document.id, text="Vertrag"))

        assert result.status == "COMPLETED"
        assert result.risk_score == 50
        assert result.summary == "Contract analysis completed"
        assert len(result.findings) == 2
        assert result.findings[0].title == "Kündigungsklausel prüfen"
        assert result.completed_at is not None

    def test_persists_findings_in_order(self, db, audit, owner, document, fake_openai):
        findings = [
            {"type": "RISK", "severity": "LOW", "title": f"T{i}", "description": f"D{i}"}
            for i in range(25)
        ]
        client = fake_openai(content=json.dumps({"riskScore": 150, "summary": "S", "findings": findings}))
        provider = AIProviderAdapter(api_key="test-key", client=client)

        result = _orchestrator(db, audit, provider).run_analysis(owner, _request(document.id, text="Vertrag"))

        assert result.risk_score == 100
        assert [f.title for f in result.findings] == [f"T{i}" for i in range(20)]

        stored = db.query(Finding).filter(Finding.analysis_id == result.id).order_by(Finding.position).all()
        assert len(stored) == 20
        assert [f.position for f in stored] == list(range(20))

    def test_audit_trail(self, db, audit, owner, document):
        _orchestrator(db, audit).run_analysis(owner, _request(document.id))
        assert _actions(db) == [AuditAction.ANALYSIS_STARTED.value, AuditAction.ANALYSIS_COMPLETED.value]

    @pytest.mark.parametrize("document_id", [None, "", "   "])
    def test_blank_document_id(self, db, audit, owner, document_id):
        with pytest.raises(ValidationFailedError) as exc_info:
            _orchestrator(db, audit).run_analysis(owner, _request(document_id))

        assert exc_info.value.detail["details"][0]["field"] == "documentId"
        assert db.query(Analysis).count() == 0

    def test_unknown_document(self, db, audit, owner):
        with pytest.raises(DocumentNotFoundError):
            _orchestrator(db, audit).run_analysis(owner, _request("missing"))

    def test_non_member(self, db, audit, document, make_user):
        stranger = make_user()
        with pytest.raises(DocumentNotFoundError):
            _orchestrator(db, audit).run_analysis(stranger, _request(document.id))

    def test_entitlement_exceeded(self, db, audit, owner, make_document, make_analysis):
        for i in range(3):
            make_analysis(make_document(owner.default_org, owner, original_name=f"c{i}.pdf"))
        fresh = make_document(owner.default_org, owner, original_name="new.pdf")

        with pytest.raises(EntitlementExceededError) as exc_info:
            _orchestrator(db, audit).run_analysis(owner, _request(fresh.id))

        assert exc_info.value.detail["message"] == (
            "Monthly limit of 3 analyses reached. Upgrade your plan for more analyses."
        )


class TestIdempotency:

    def test_completed_analysis_returned_without_provider_call(self, db, audit, owner, document, fake_openai):
        client = fake_openai(content=json.dumps({
            "riskScore": 30, "summary": "S",
            "findings": [{"type": "LEGAL", "severity": "LOW", "title": "T", "description": "D"}],
        }))
        orchestrator = _orchestrator(db, audit, AIProviderAdapter(api_key="test-key", client=client))

        first = orchestrator.run_analysis(owner, _request(document.id, text="Vertrag"))
        second = orchestrator.run_analysis(owner, _request(document.id, text="Vertrag"))

        assert second.id == first.id
        assert second.model_dump() == first.model_dump()
        assert len(client.calls) == 1
        assert db.query(Analysis).count() == 1

    def test_error_analysis_does_not_block_retry(self, db, audit, owner, document, make_analysis):
        failed = make_analysis(document, status=AnalysisStatus.ERROR)

        result = _orchestrator(db, audit).run_analysis(owner, _request(document.id))

        assert result.id != failed.id
        assert result.status == "COMPLETED"

    def test_processing_analysis_yields_conflict(self, db, audit, owner, document, make_analysis):
        make_analysis(document, status=AnalysisStatus.PROCESSING)

        with pytest.raises(AnalysisInProgressError) as exc_info:
            _orchestrator(db, audit).run_analysis(owner, _request(document.id))

        assert exc_info.value.status_code == 409
        assert db.query(Analysis).count() == 1

    def test_lost_race_returns_winner(self, db, audit, owner, document, make_analysis, monkeypatch):
        """The lookup missed the winner; the index catches it and the winner is returned."""
        winner = make_analysis(document, status=AnalysisStatus.COMPLETED, risk_score=12)
        orchestrator = _orchestrator(db, audit)
        monkeypatch.setattr(orchestrator, "find_completed", lambda document_id: None)

        result = orchestrator.run_analysis(owner, _request(document.id))

        assert result.id == winner.id
        assert result.risk_score == 12


class TestFailurePath:

    def test_persistence_failure_marks_error(self, db, audit, owner, document, monkeypatch):
        def broken_complete(self, risk_score, summary):
            raise RuntimeError("disk full")

        monkeypatch.setattr(Analysis, "complete", broken_complete)

        with pytest.raises(AnalysisFailedError) as exc_info:
            _orchestrator(db, audit).run_analysis(owner, _request(document.id))

        assert exc_info.value.status_code == 500
        assert exc_info.value.detail["error"] == "analysis_failed"

        db.expire_all()
        analysis = db.query(Analysis).one()
        assert analysis.status == "ERROR"
        assert analysis.completed_at is not None
        assert _actions(db)[-1] == AuditAction.ANALYSIS_FAILED.value
