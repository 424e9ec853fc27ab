"""
Dashboard metrics scoped to the organizations a user belongs to.
"""
import logging
from datetime import timedelta
from typing import Any, Dict

from fastapi import Depends
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from contract_analysis.database import get_db, utcnow
from contract_analysis.models.analysis import Analysis, AnalysisStatus
from contract_analysis.models.document import Document
from contract_analysis.models.user import User

logger = logging.getLogger(__name__)

RECENT_DAYS = 7


class MetricsService:
    def __init__(self, db: Session):
        self.db = db

    def get_metrics(self, user: User) -> Dict[str, Any]:
        org_ids = user.org_ids
        if not org_ids:
            return self._empty()

        documents = self.db.query(Document).filter(Document.org_id.in_(org_ids))
        total_documents = documents.count()
        recent_documents = documents.filter(
            Document.created_at >= utcnow() - timedelta(days=RECENT_DAYS)
        ).count()

        analyses = (
            self.db.query(Analysis)
            .join(Document, Analysis.document_id == Document.id)
            .filter(Document.org_id.in_(org_ids))
        )
        total_analyses = analyses.count()

        completed = analyses.filter(Analysis.status == AnalysisStatus.COMPLETED.value)
        completed_analyses = completed.count()

        scored = completed.filter(Analysis.risk_score.isnot(None))
        avg_risk = scored.with_entities(func.avg(Analysis.risk_score)).scalar()

        low, medium, high = scored.with_entities(
            func.sum(case((Analysis.risk_score <= 30, 1), else_=0)),
            func.sum(case(((Analysis.risk_score > 30) & (Analysis.risk_score <= 70), 1), else_=0)),
            func.sum(case((Analysis.risk_score > 70, 1), else_=0)),
        ).one()

        success_rate = (
            round(completed_analyses / total_analyses * 100, 1) if total_analyses else 0.0
        )

        return {
            "totalDocuments": total_documents,
            "totalAnalyses": total_analyses,
            "completedAnalyses": completed_analyses,
            "avgRiskScore": int(round(avg_risk)) if avg_risk is not None else 0,
            "recentDocuments": recent_documents,
            "successRate": success_rate,
            "riskDistribution": {
                "low": int(low or 0),
                "medium": int(medium or 0),
                "high": int(high or 0),
            },
        }

    @staticmethod
    def _empty() -> Dict[str, Any]:
        return {
            "totalDocuments": 0,
            "totalAnalyses": 0,
            "completedAnalyses": 0,
            "avgRiskScore": 0,
            "recentDocuments": 0,
            "successRate": 0.0,
            "riskDistribution": {"low": 0, "medium": 0, "high": 0},
        }


def get_metrics_service(db: Session = Depends(get_db)) -> MetricsService:
    return MetricsService(db)
