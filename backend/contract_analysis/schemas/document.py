"""
Pydantic schemas for uploaded documents.
"""
from datetime import datetime
from typing import Optional

from contract_analysis.schemas.analysis import CamelModel


class DocumentUploadResponse(CamelModel):
    """Schema for the upload response."""
    id: str
    filename: str
    size: int
    type: str
    category: str
    status: str
    uploaded_at: datetime
    download_url: Optional[str] = None
