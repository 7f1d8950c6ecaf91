"""Authentication router."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldsync.api.dependencies import AnyUser
from fieldsync.core.database import get_db
from fieldsync.schemas.user import LoginRequest, MeResponse, RefreshRequest, TokenPair
from fieldsync.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenPair)
def login(data: LoginRequest, db: Annotated[Session, Depends(get_db)]):
    """
    Login with email and password.

    Returns an access token and a refresh token bound to ``device_id``.
    """
    return AuthService(db).login(data.email, data.password, data.device_id)


@router.post("/refresh", response_model=TokenPair)
def refresh_token(data: RefreshRequest, db: Annotated[Session, Depends(get_db)]):
    """Exchange a refresh token for a new token pair."""
    return AuthService(db).refresh(data.refresh_token, data.device_id)


@router.get("/me", response_model=MeResponse)
def get_current_user_info(current_user: AnyUser):
    """Current authenticated user."""
    return {"user": current_user}
