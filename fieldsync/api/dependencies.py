"""Shared router dependencies."""
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from fieldsync.core.database import get_db
from fieldsync.core.security import decode_token
from fieldsync.models.user import User
from fieldsync.repositories.user_repository import UserRepository

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """
    Resolve the user behind the bearer access token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or the user is gone
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Missing bearer token")

    claims = decode_token(credentials.credentials)
    if not claims or not str(claims.get("sub", "")).isdigit():
        raise _unauthorized("Invalid/expired token")

    user = UserRepository(db).get_by_id(int(claims["sub"]))
    if not user or not user.is_active:
        raise _unauthorized("User not found")
    return user


AnyUser = Annotated[User, Depends(get_current_user)]
