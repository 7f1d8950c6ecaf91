"""Authentication service."""
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from fieldsync.core.config import settings
from fieldsync.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from fieldsync.models.user import User
from fieldsync.repositories.user_repository import UserRepository
from fieldsync.schemas.user import TokenPair, UserResponse


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    """Authentication business logic."""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user by email and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = self.user_repo.get_by_email(email)

        if not user:
            return None

        if not user.is_active:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        return user

    def issue_tokens(self, user: User, device_id: Optional[str] = None) -> TokenPair:
        """Issue an access/refresh pair, binding the refresh token to the device."""
        claims = {"sub": str(user.id), "role": user.role.value}
        refresh_claims = dict(claims)
        if device_id:
            refresh_claims["did"] = device_id
        return TokenPair(
            user=UserResponse.model_validate(user),
            access_token=create_access_token(claims),
            refresh_token=create_refresh_token(refresh_claims),
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    def login(self, email: str, password: str, device_id: Optional[str] = None) -> TokenPair:
        """
        Login user and return a token pair.

        Raises:
            HTTPException: If authentication fails
        """
        user = self.authenticate_user(email, password)

        if not user:
            raise _unauthorized("Incorrect email or password")

        return self.issue_tokens(user, device_id)

    def refresh(self, refresh_token: str, device_id: Optional[str] = None) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        Raises:
            HTTPException: If the token is invalid, bound to another device or its user is gone
        """
        claims = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        if not claims:
            raise _unauthorized("Invalid refresh token")

        bound_device = claims.get("did")
        if bound_device and device_id and str(bound_device) != str(device_id):
            raise _unauthorized("Device mismatch")

        user = self.user_repo.get_by_id(int(claims["sub"]))
        if not user or not user.is_active:
            raise _unauthorized("User not found")

        return self.issue_tokens(user, device_id or bound_device)
