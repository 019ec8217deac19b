"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by POST /auth/login.
  2. Authorization: Bearer <token> header -- API clients.

Both converge on a verified ClaimSet.

try_get_claims() is the soft variant (returns None on failure).
get_claims() wraps it and raises HTTP 401 if unauthenticated.
authorize() raises HTTP 403 when AuthService.can_act() says no.

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. Nothing else in auth/ does.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.policy import Action
from auth.service import AuthService
from auth.tokens import ClaimSet
from core.errors import Unauthenticated


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def extract_token(request: Request) -> str | None:
    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_claims(request: Request) -> ClaimSet | None:
    """Return verified claims for the request, or None. Never raises."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return get_auth_service(request).claims(token)
    except Unauthenticated:
        return None


def get_claims(request: Request) -> ClaimSet:
    """Require authentication. Raises HTTP 401 if the request carries no valid token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: ClaimSet = Depends(get_claims)): ...
    """
    claims = try_get_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return claims


def authorize(request: Request, claims: ClaimSet, action: Action, target_id: int | None = None) -> None:
    """Raise HTTP 403 unless the caller may perform action on target_id."""
    if not get_auth_service(request).can_act(claims, action, target_id):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You are not allowed to perform this action."},
        )


def set_auth_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT lifetime so both expire together.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="strict",
        secure=secure,
        max_age=max_age,
    )
