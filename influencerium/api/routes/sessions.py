"""Self-service session management ("view my devices", "log out everywhere")."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from influencerium.auth import authenticate, current_session_id
from influencerium.exceptions import NotFoundError
from influencerium.rbac import Principal
from influencerium.sessions.models import Session, SessionPage

router = APIRouter(prefix="/auth/sessions", tags=["Sessions"])


@router.get("", response_model=SessionPage)
async def list_sessions(
    request: Request,
    status: str = Query(default="all"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    principal: Principal = Depends(authenticate),
):
    """List the caller's sessions with masked tokens."""
    return await request.app.state.sessions.get_user_sessions(
        principal.id, status=status, page=page, limit=limit
    )


@router.get("/count")
async def count_sessions(request: Request, principal: Principal = Depends(authenticate)):
    count = await request.app.state.sessions.count_active_sessions(principal.id)
    return {"active_sessions": count}


@router.get("/{session_id}", response_model=Session)
async def get_session(
    session_id: str, request: Request, principal: Principal = Depends(authenticate)
):
    session = await request.app.state.sessions.get_session_by_id(session_id, principal.id)
    if session is None:
        raise NotFoundError("Session")
    return session


@router.delete("")
async def revoke_other_sessions(request: Request, principal: Principal = Depends(authenticate)):
    """Log out every other device.

    The session kept is the one named by ``X-Session-ID``, falling back to
    the session the request was authenticated with.
    """
    keep = request.headers.get("X-Session-ID") or current_session_id(request)
    count = await request.app.state.sessions.revoke_all_sessions(principal.id, keep)
    return {"message": f"{count} session(s) revoked successfully", "revoked": count}


@router.delete("/all")
async def revoke_all_sessions(request: Request, principal: Principal = Depends(authenticate)):
    """Log out everywhere, including the current session."""
    count = await request.app.state.sessions.revoke_all_sessions(principal.id)
    return {
        "message": f"{count} session(s) revoked. You have been logged out from all devices.",
        "revoked": count,
    }


@router.delete("/device/{device_type}")
async def revoke_device_sessions(
    device_type: str, request: Request, principal: Principal = Depends(authenticate)
):
    count = await request.app.state.sessions.revoke_sessions_by_type(principal.id, device_type)
    return {"message": f"{count} {device_type} session(s) revoked", "revoked": count}


@router.delete("/{session_id}")
async def revoke_session(
    session_id: str, request: Request, principal: Principal = Depends(authenticate)
):
    revoked = await request.app.state.sessions.revoke_session(session_id, principal.id)
    if not revoked:
        raise NotFoundError("Session")
    return {"message": "Session revoked successfully"}
