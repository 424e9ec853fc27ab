"""
Pydantic schemas for analyses and findings.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AnalysisRequest(CamelModel):
    """Body of POST /api/analysis. documentId is checked by the orchestrator."""
    document_id: Optional[str] = None
    document_name: Optional[str] = None
    category: Optional[str] = None
    text: Optional[str] = None


class FindingOut(CamelModel):
    type: str
    severity: str
    title: str
    description: str
    location: Optional[str] = None
    suggestion: Optional[str] = None


class AnalysisResult(CamelModel):
    """Normalized analysis as returned by the API."""
    id: str
    document_id: str
    status: str
    risk_score: Optional[int] = None
    summary: Optional[str] = None
    findings: List[FindingOut] = []
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
