"""
Security helpers: PII scrubbing, client IP extraction, request context,
filename sanitising and signed file URLs.
"""
import hashlib
import hmac
import re
import time
from contextvars import ContextVar
from typing import Any, Dict, Optional

from fastapi import Request

# Order matters: card numbers must be redacted before the phone pattern
# eats their digit groups.
PII_PATTERNS = [
    ("email", re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL_REDACTED]"),
    ("creditcard", re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"), "[CC_REDACTED]"),
    ("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN_REDACTED]"),
    ("ip", re.compile(r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b"), "[IP_REDACTED]"),
    ("phone", re.compile(r"(?<!\w)\+?\d[\d\s().-]{7,}\d\b"), "[PHONE_REDACTED]"),
    ("token", re.compile(r"\b[A-Za-z0-9]{32,}\b"), "[TOKEN_REDACTED]"),
]

_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})


def scrub_pii(text: str) -> str:
    """Replace PII in a string with redaction markers."""
    if not text or not isinstance(text, str):
        return text
    for _, pattern, replacement in PII_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def scrub_pii_from_object(obj: Any) -> Any:
    """Recursively scrub PII from dicts, lists and strings."""
    if isinstance(obj, str):
        return scrub_pii(obj)
    if isinstance(obj, dict):
        return {scrub_pii(str(k)): scrub_pii_from_object(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [scrub_pii_from_object(item) for item in obj]
    return obj


def get_client_ip(request: Request) -> Optional[str]:
    """Extract the real client IP, considering proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip
    return request.client.host if request.client else None


def set_request_context(
    request_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
):
    """Bind request metadata for the current execution context."""
    return _request_context.set({
        "request_id": request_id,
        "ip_address": ip_address,
        "user_agent": user_agent,
    })


def reset_request_context(token) -> None:
    _request_context.reset(token)


def get_request_context() -> Dict[str, Any]:
    return _request_context.get()


def sanitize_filename(filename: str) -> str:
    """Remove path traversal attempts and dangerous characters."""
    cleaned = re.sub(r"[^a-zA-Z0-9.-]", "_", filename or "")
    cleaned = re.sub(r"\.{2,}", ".", cleaned)
    return cleaned[:255] or "upload"


def _sign(file_id: str, expires: int, secret: str) -> str:
    message = f"{file_id}:{expires}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def generate_signed_url(file_id: str, secret: str, expires_in: int = 3600) -> str:
    """Build a time-limited download URL for a stored file."""
    expires = int(time.time()) + expires_in
    signature = _sign(file_id, expires, secret)
    return f"/api/files/{file_id}?expires={expires}&signature={signature}"


def verify_signed_url(file_id: str, expires: str, signature: str, secret: str) -> bool:
    """Check a signed URL's expiry and signature."""
    try:
        expires_at = int(expires)
    except (TypeError, ValueError):
        return False

    if expires_at < int(time.time()):
        return False

    expected = _sign(file_id, expires_at, secret)
    return hmac.compare_digest(expected, signature or "")
