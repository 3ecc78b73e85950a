"""
Sign up, log in, log out and password reset.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from echoworld import accounts
from echoworld.config import Settings, get_settings
from echoworld.db import Database
from echoworld.dependencies import get_bearer_token, get_current_user_id, get_db
from echoworld.profiles import get_profile_by_id
from echoworld.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    OkResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(info: accounts.SessionInfo) -> SessionResponse:
    return SessionResponse(
        token=info.token, user_id=info.user_id, expires_at=info.expires_at
    )


@router.post("/signup", response_model=SessionResponse, status_code=201)
def signup(
    payload: SignupRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    info = accounts.signup(
        db,
        payload.email,
        payload.password,
        payload.date_of_birth or "",
        payload.tos_accepted,
        minimum_age=settings.minimum_age,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    return _session_response(info)


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    info = accounts.login(
        db,
        payload.email,
        payload.password,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    return _session_response(info)


@router.post("/logout", response_model=OkResponse)
def logout(token: str = Depends(get_bearer_token), db: Database = Depends(get_db)):
    accounts.logout(db, token)
    return OkResponse()


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    message = accounts.request_password_reset(
        db,
        payload.email,
        site_url=settings.site_url,
        ttl_seconds=settings.password_reset_ttl_seconds,
    )
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=OkResponse)
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    accounts.reset_password(db, payload.token, payload.password)
    return OkResponse()


@router.get("/me", response_model=MeResponse)
def me(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    profile = get_profile_by_id(db, user_id)
    return MeResponse(
        user_id=user_id,
        email=accounts.get_user_email(db, user_id),
        profile=profile.as_dict() if profile else None,
    )
