"""
Document model - an uploaded contract or business document.
"""
import enum

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from contract_analysis.database import Base, generate_uuid, utcnow


class DocumentStatus(str, enum.Enum):
    UPLOADED = "UPLOADED"


class Document(Base):
    """Uploaded file owned by an organization."""

    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    org_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    uploader_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    filename = Column(String(300), unique=True, nullable=False)  # storage key
    original_name = Column(String(255), nullable=False)
    path = Column(String(500), nullable=False)
    size = Column(Integer, nullable=False)  # bytes
    mime_type = Column(String(150), nullable=False)
    category = Column(String(100), default="unspecified", nullable=False)
    status = Column(String(20), default=DocumentStatus.UPLOADED.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    org = relationship("Organization", back_populates="documents")
    uploader = relationship("User")
    analyses = relationship("Analysis", back_populates="document", order_by="Analysis.created_at")

    def __repr__(self):
        return f"<Document {self.id} {self.original_name}>"
