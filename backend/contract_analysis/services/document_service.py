"""
Document access and upload.

Access is membership based: a user may touch a document iff they belong to
the organization owning it. Lookups return None both for unknown ids and for
documents the user may not see, so callers cannot leak existence.
"""
import logging
from typing import Optional

from fastapi import Depends, UploadFile
from sqlalchemy.orm import Session

from contract_analysis.database import get_db
from contract_analysis.exceptions import (
    FileMissingError,
    FileSizeExceededError,
    OrganizationRequiredError,
    UnsupportedTypeError,
    UploadFailedError,
    VirusDetectedError,
)
from contract_analysis.models.analysis import Analysis
from contract_analysis.models.audit import AuditAction
from contract_analysis.models.document import Document, DocumentStatus
from contract_analysis.models.user import OrgMembership, User
from contract_analysis.services.audit_service import AuditService
from contract_analysis.services.entitlement_service import EntitlementService
from contract_analysis.services.storage_service import LocalStorageService
from contract_analysis.services.virus_scan import scan_file

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
}

DEFAULT_CATEGORY = "unspecified"


class DocumentService:
    """Membership-scoped document lookups and uploads."""

    def __init__(self, db: Session):
        self.db = db

    def _member_documents(self, user_id: str):
        return (
            self.db.query(Document)
            .join(OrgMembership, OrgMembership.org_id == Document.org_id)
            .filter(OrgMembership.user_id == user_id)
        )

    def find_accessible_document(self, document_id: str, user_id: str) -> Optional[Document]:
        return self._member_documents(user_id).filter(Document.id == document_id).first()

    def find_accessible_file(self, file_key: str, user_id: str) -> Optional[Document]:
        return self._member_documents(user_id).filter(Document.filename == file_key).first()

    def find_accessible_analysis(self, analysis_id: str, user_id: str) -> Optional[Analysis]:
        return (
            self.db.query(Analysis)
            .join(Document, Analysis.document_id == Document.id)
            .join(OrgMembership, OrgMembership.org_id == Document.org_id)
            .filter(Analysis.id == analysis_id, OrgMembership.user_id == user_id)
            .first()
        )

    def create_document(
        self,
        user: User,
        upload: Optional[UploadFile],
        category: Optional[str],
        storage: LocalStorageService,
        entitlements: EntitlementService,
        audit: AuditService,
    ) -> Document:
        """
        Validate, scan and store an upload, then record it.

        Raises:
            FileMissingError, UnsupportedTypeError, OrganizationRequiredError,
            FileSizeExceededError, VirusDetectedError, UploadFailedError
        """
        if upload is None or not upload.filename:
            raise FileMissingError()

        mime_type = (upload.content_type or "").split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            raise UnsupportedTypeError(f"Unsupported file type: {mime_type or 'unknown'}")

        org = user.default_org
        if org is None:
            raise OrganizationRequiredError()

        data = upload.file.read()
        size_check = entitlements.is_document_size_allowed(user, len(data))
        if not size_check.allowed:
            raise FileSizeExceededError(size_check.reason)

        scan = scan_file(data, upload.filename)
        if not scan.is_clean:
            raise VirusDetectedError(threats=scan.threats)

        stored = None
        try:
            stored = storage.save(data, upload.filename)
            document = Document(
                org_id=org.id,
                uploader_id=user.id,
                filename=stored.key,
                original_name=upload.filename,
                path=stored.path,
                size=stored.size,
                mime_type=mime_type,
                category=category or DEFAULT_CATEGORY,
                status=DocumentStatus.UPLOADED.value,
            )
            self.db.add(document)
            self.db.commit()
            self.db.refresh(document)
        except Exception as e:
            self.db.rollback()
            if stored is not None:
                storage.delete(stored.key)
            logger.error(f"Document upload failed for user {user.id}: {e}", exc_info=True)
            raise UploadFailedError()

        audit.record(
            AuditAction.DOCUMENT_UPLOADED,
            user_id=user.id,
            document_id=document.id,
            details={
                "filename": document.original_name,
                "size": document.size,
                "mimeType": document.mime_type,
                "category": document.category,
            },
        )
        logger.info(f"Document {document.id} uploaded by user {user.id}")
        return document


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    return DocumentService(db)
