"""
Document upload route.

Accepts PDF, Word and plain-text contracts as multipart/form-data, checks
them against the plan's size limit and the upload scan, stores them and
records a Document owned by the uploader's default organization.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from contract_analysis.exceptions import ExpectedMultipartError
from contract_analysis.models.user import User
from contract_analysis.rate_limiter import RateLimitResult, RateLimits, rate_limit
from contract_analysis.schemas.document import DocumentUploadResponse
from contract_analysis.services.audit_service import AuditService, get_audit_service
from contract_analysis.services.document_service import DocumentService, get_document_service
from contract_analysis.services.entitlement_service import EntitlementService, get_entitlement_service
from contract_analysis.services.storage_service import LocalStorageService, get_storage_service
from contract_analysis.utils.dependencies import require_auth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.post("", response_model=DocumentUploadResponse)
def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    category: Optional[str] = Form(None),
    current_user: User = Depends(require_auth),
    _rate: RateLimitResult = Depends(rate_limit(RateLimits.UPLOAD)),
    documents: DocumentService = Depends(get_document_service),
    entitlements: EntitlementService = Depends(get_entitlement_service),
    storage: LocalStorageService = Depends(get_storage_service),
    audit: AuditService = Depends(get_audit_service),
):
    """Upload a contract for later analysis."""
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        raise ExpectedMultipartError()

    document = documents.create_document(
        current_user,
        file,
        category,
        storage=storage,
        entitlements=entitlements,
        audit=audit,
    )

    return DocumentUploadResponse(
        id=document.id,
        filename=document.original_name,
        size=document.size,
        type=document.mime_type,
        category=document.category,
        status=document.status,
        uploaded_at=document.created_at,
        download_url=storage.signed_url(document.filename),
    )
