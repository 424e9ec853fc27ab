"""
Stored file download.

Either a signed URL (expires + signature) or an authenticated member of the
owning organization may fetch a file.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from contract_analysis.config import settings
from contract_analysis.database import get_db
from contract_analysis.exceptions import (
    InvalidSignatureError,
    StoredFileNotFoundError,
    UnauthorizedError,
)
from contract_analysis.models.document import Document
from contract_analysis.models.user import User
from contract_analysis.services.document_service import DocumentService, get_document_service
from contract_analysis.services.storage_service import LocalStorageService, get_storage_service
from contract_analysis.utils.dependencies import get_optional_user
from contract_analysis.utils.security import sanitize_filename, verify_signed_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


@router.get("/{file_id}")
def download_file(
    file_id: str,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_user),
    documents: DocumentService = Depends(get_document_service),
    storage: LocalStorageService = Depends(get_storage_service),
    db: Session = Depends(get_db),
):
    if expires and signature:
        if not verify_signed_url(file_id, expires, signature, settings.FILE_SIGNING_SECRET):
            logger.warning(f"Invalid or expired signed URL for file {file_id}")
            raise InvalidSignatureError()
        document = db.query(Document).filter(Document.filename == file_id).first()
    else:
        if current_user is None:
            raise UnauthorizedError()
        document = documents.find_accessible_file(file_id, current_user.id)
        if document is None:
            logger.warning(f"Unauthorized file access attempt by {current_user.id} for {file_id}")

    if document is None:
        raise StoredFileNotFoundError()

    try:
        content = storage.read(document.filename)
    except FileNotFoundError:
        raise StoredFileNotFoundError()

    logger.info(f"Serving file {file_id} ({document.size} bytes)")
    return Response(
        content=content,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{sanitize_filename(document.original_name)}"',
            "Cache-Control": "private, max-age=3600",
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
        },
    )
