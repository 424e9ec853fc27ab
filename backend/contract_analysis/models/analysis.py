"""
Analysis and Finding models.

An Analysis is one assessment run over a Document. It is created in
PROCESSING and moves exactly once to COMPLETED or ERROR:

    PROCESSING -> COMPLETED
    PROCESSING -> ERROR

At most one active (PROCESSING or COMPLETED) analysis may exist per document;
the partial unique index below enforces it in the database so concurrent
requests cannot both start an analysis for the same document.
"""
import enum
from typing import Dict, List

from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from contract_analysis.database import Base, generate_uuid, utcnow
from contract_analysis.exceptions import InvalidTransitionError

MAX_FINDINGS = 20

# Width of the bounded Finding columns (title, location)
FINDING_FIELD_MAX_LENGTH = 500


class AnalysisStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class FindingType(str, enum.Enum):
    RISK = "RISK"
    COMPLIANCE = "COMPLIANCE"
    LEGAL = "LEGAL"
    FINANCIAL = "FINANCIAL"
    OPERATIONAL = "OPERATIONAL"


class FindingSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# current status -> allowed target statuses
TRANSITIONS: Dict[str, List[str]] = {
    "PROCESSING": ["COMPLETED", "ERROR"],
    "COMPLETED": [],
    "ERROR": [],
}

_ACTIVE_STATUSES = "status IN ('PROCESSING', 'COMPLETED')"


def clamp_risk_score(value) -> int:
    """Round and clamp a risk score into [0, 100]."""
    return max(0, min(100, int(round(value))))


class Analysis(Base):
    """One risk assessment run over a document."""

    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    document_id = Column(String(36), ForeignKey("documents.id"), nullable=False, index=True)
    status = Column(String(20), default=AnalysisStatus.PROCESSING.value, nullable=False, index=True)
    risk_score = Column(Integer)
    summary = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True))

    document = relationship("Document", back_populates="analyses")
    findings = relationship(
        "Finding",
        back_populates="analysis",
        order_by="Finding.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_analyses_active_document",
            "document_id",
            unique=True,
            sqlite_where=text(_ACTIVE_STATUSES),
            postgresql_where=text(_ACTIVE_STATUSES),
        ),
    )

    def __repr__(self):
        return f"<Analysis {self.id} {self.status}>"

    def transition_to(self, target: AnalysisStatus) -> None:
        """Move to a new status, refusing anything but PROCESSING -> terminal."""
        target_value = AnalysisStatus(target).value
        if target_value not in TRANSITIONS.get(self.status, []):
            raise InvalidTransitionError(self.status, target_value)
        self.status = target_value
        self.completed_at = utcnow()

    def complete(self, risk_score, summary: str) -> None:
        self.transition_to(AnalysisStatus.COMPLETED)
        self.risk_score = clamp_risk_score(risk_score)
        self.summary = summary

    def fail(self) -> None:
        self.transition_to(AnalysisStatus.ERROR)


class Finding(Base):
    """A single issue surfaced by an analysis."""

    __tablename__ = "findings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    analysis_id = Column(String(36), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(20), nullable=False)
    severity = Column(String(20), nullable=False)
    title = Column(String(FINDING_FIELD_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String(FINDING_FIELD_MAX_LENGTH))
    suggestion = Column(Text)

    analysis = relationship("Analysis", back_populates="findings")

    def __repr__(self):
        return f"<Finding {self.severity} {self.title}>"
