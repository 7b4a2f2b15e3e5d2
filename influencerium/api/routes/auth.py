"""Auth routes: login, token refresh, logout, and the current principal."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field

from influencerium.api.ratelimit import LOGIN_RATE_LIMIT, limiter
from influencerium.auth import authenticate, current_session_id
from influencerium.auth_providers.jwt_provider import (
    issue_access_token,
    issue_refresh_token,
    verify_refresh_token,
)
from influencerium.auth_providers.user_account import login_user
from influencerium.exceptions import AuthenticationError, NotFoundError
from influencerium.rbac import Principal, hierarchy_level, permissions_for_principal
from influencerium.sessions.models import SessionMetadata
from influencerium.sessions.service import session_headers

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    device_info: str | None = Field(default=None, max_length=100)
    create_session: bool = True


class UserOut(BaseModel):
    id: str
    email: str
    name: str | None
    role: str


class LoginResponse(BaseModel):
    user: UserOut
    token: str
    refresh_token: str
    session_id: str | None = None
    session_token: str | None = None
    session_expires_at: datetime | None = None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class RefreshResponse(BaseModel):
    token: str


class MeResponse(BaseModel):
    id: str
    email: str | None
    name: str | None
    role: str
    level: int
    permissions: list[str]
    session_id: str | None


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(req: LoginRequest, request: Request, response: Response):
    """Login with email and password.

    Returns an access token, a refresh token and, unless ``create_session``
    is false, a brand-new session token. The session token is only ever
    returned here.
    """
    user = await login_user(request.app.state.db, req.email, req.password)

    metadata = SessionMetadata(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
        device_info=req.device_info,
    )
    session = await request.app.state.sessions.create_session_for_user(
        Principal(id=user["id"], role=user["role"]), metadata, create=req.create_session
    )
    if session is not None:
        response.headers.update(session_headers(session))

    return LoginResponse(
        user=UserOut(id=user["id"], email=user["email"], name=user["name"], role=user["role"]),
        token=issue_access_token(user),
        refresh_token=issue_refresh_token(user),
        session_id=session.id if session else None,
        session_token=session.session_token if session else None,
        session_expires_at=session.expires_at if session else None,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(req: RefreshRequest, request: Request):
    """Exchange a refresh token for a new access token."""
    claims = verify_refresh_token(req.refresh_token)
    user = await request.app.state.db.get_user(claims["sub"])
    if user is None or user["status"] != "active":
        raise AuthenticationError("User not found")
    return RefreshResponse(token=issue_access_token(user))


@router.post("/logout")
async def logout(request: Request, principal: Principal = Depends(authenticate)):
    """Revoke the session the request was made with, if any."""
    session_id = current_session_id(request)
    revoked = False
    if session_id is not None:
        revoked = await request.app.state.sessions.revoke_session(session_id, principal.id)
    return {"message": "Logged out successfully", "session_revoked": revoked}


@router.get("/me", response_model=MeResponse)
async def me(request: Request, principal: Principal = Depends(authenticate)):
    """Current principal with its role level and effective permissions."""
    user = await request.app.state.db.get_user(principal.id)
    if user is None:
        raise NotFoundError("User")
    return MeResponse(
        id=principal.id,
        email=user["email"],
        name=user["name"],
        role=principal.role,
        level=hierarchy_level(principal.role),
        permissions=permissions_for_principal(principal),
        session_id=current_session_id(request),
    )
