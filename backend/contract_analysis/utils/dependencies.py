"""
FastAPI dependencies for authentication.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from contract_analysis.database import get_db
from contract_analysis.exceptions import UnauthorizedError
from contract_analysis.models.user import User
from contract_analysis.utils.auth import decode_access_token

# auto_error=False so a missing header yields our JSON 401 instead of FastAPI's 403
security = HTTPBearer(auto_error=False)


def _authenticate_user(token: str, db: Session) -> User:
    """
    Authenticate user from JWT token.

    Args:
        token: JWT token string
        db: Database session

    Returns:
        Authenticated user

    Raises:
        UnauthorizedError: If the token is invalid or the user is unknown
    """
    payload = decode_access_token(token)
    if payload is None:
        raise UnauthorizedError("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Could not validate credentials")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if user is None:
        raise UnauthorizedError("Could not validate credentials")

    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from the Authorization header.

    Raises:
        UnauthorizedError: If no valid bearer token is provided
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return _authenticate_user(credentials.credentials, db)


# Route-level name for the authentication capability
require_auth = get_current_user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests yield None."""
    if credentials is None or not credentials.credentials:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        return None
    return db.query(User).filter(User.id == str(payload["sub"])).first()
