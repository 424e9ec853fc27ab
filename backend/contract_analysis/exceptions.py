"""
API error taxonomy.

Every error leaves the service as JSON ``{"error": <code>, "message": <text>}``.
Services raise these directly; the handlers in ``main.py`` flatten the detail
dict into the response body.
"""
from typing import Dict, List, Optional

from fastapi import HTTPException, status


class APIError(HTTPException):
    """HTTP error carrying a machine-readable code."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"
    message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **extra,
    ):
        detail = {"error": self.error, "message": message or self.message}
        detail.update(extra)
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class ValidationFailedError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_failed"
    message = "Invalid request"

    def __init__(self, details: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message=message, details=details)


class UnauthorizedError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, headers={"WWW-Authenticate": "Bearer"})


class DocumentNotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "document_not_found"
    message = "Document not found or access denied"


class AnalysisNotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "analysis_not_found"
    message = "Analysis not found or access denied"


class StoredFileNotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "file_not_found"
    message = "File not found or access denied"


class InvalidSignatureError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "invalid_signature"
    message = "Invalid or expired URL"


class EntitlementExceededError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "entitlement_exceeded"


class ExportNotAllowedError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "export_not_allowed"


class OrganizationRequiredError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "organization_required"
    message = "No organization found"


class AnalysisInProgressError(APIError):
    status_code = status.HTTP_409_CONFLICT
    error = "analysis_in_progress"
    message = "An analysis for this document is already running"


class RateLimitExceededError(APIError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "rate_limit_exceeded"
    message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, headers: Dict[str, str]):
        super().__init__(headers=headers, retryAfter=retry_after)


class ExpectedMultipartError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "expected_multipart_form_data"
    message = "Request must be multipart/form-data"


class FileMissingError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "file_missing"
    message = "No file provided"


class UnsupportedTypeError(APIError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    error = "unsupported_type"
    message = "Unsupported file type"


class FileSizeExceededError(APIError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error = "file_size_exceeded"
    message = "File size exceeds limit"


class VirusDetectedError(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "virus_detected"
    message = "File failed security scan"


class AnalysisFailedError(APIError):
    error = "analysis_failed"
    message = "Analysis could not be completed"


class ReportFailedError(APIError):
    error = "report_failed"
    message = "Failed to generate report"


class MetricsFailedError(APIError):
    error = "metrics_failed"
    message = "Failed to compute metrics"


class UploadFailedError(APIError):
    error = "upload_failed"
    message = "Failed to store document"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


class InvalidTransitionError(Exception):
    """Raised when an invalid analysis state transition is attempted."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current} -> {target}")
