"""
JWT helpers.

Sign-in happens elsewhere; this service only issues tokens for tooling and
tests and verifies the bearer tokens it receives.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from contract_analysis.config import settings
from contract_analysis.database import utcnow


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to encode; ``sub`` must hold the user id
        expires_delta: Optional lifetime override

    Returns:
        Encoded JWT
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a JWT, returning None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
