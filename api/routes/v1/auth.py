"""
api/routes/v1/auth.py -- Authentication and verification REST endpoints.

Routes:
  POST /api/v1/auth/login    -- email/password login; returns JWT and sets cookie
  POST /api/v1/auth/logout   -- clears cookie; the token itself stays valid until expiry
  POST /api/v1/auth/verify   -- consume a verification token (?token=...)
  POST /api/v1/auth/resend   -- re-send the verification email
  GET  /api/v1/auth/me       -- verified claims of the caller (requires auth)

Security:
  [H2] POST /login and POST /resend are rate-limited per IP.
  [C1] AuthService.login() provides timing equalization -- never inline the lookup.
  [M5] Cache-Control: no-store on login responses.
  Login failures return one generic "bad_credentials" error whatever the cause.

Domain errors (Unauthenticated, NotFound, AlreadyActivated, ...) propagate to
the exception handlers in api/main.py, which map them to status codes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import ClaimsResponse, LoginRequest, LoginResponse, MessageResponse, ResendRequest
from auth.dependencies import get_auth_service, get_claims, set_auth_cookie
from auth.tokens import ClaimSet
from core.errors import Unauthenticated

logger = logging.getLogger("coreid.api.auth")

# Auth policy:
# - POST /api/v1/auth/login:   public
# - POST /api/v1/auth/logout:  public -- clearing a cookie needs no prior auth
# - POST /api/v1/auth/verify:  public -- the token in the query string is the credential
# - POST /api/v1/auth/resend:  public, rate-limited
# - GET  /api/v1/auth/me:      requires auth (get_claims)
router = APIRouter()


@limiter.limit(login_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the JWT and set the cookie."""
    service = get_auth_service(request)
    try:
        token = service.login(body.email, body.password)
    except Unauthenticated:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    expires_in = service.tokens.lifetime_seconds
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=expires_in,
        ).model_dump(),
    )
    set_auth_cookie(resp, token, max_age=expires_in, secure=request.app.state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the JWT cookie. Tokens are stateless, so nothing is revoked server-side."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.post("/auth/verify", response_model=MessageResponse)
def verify(request: Request, token: str = Query(min_length=1)) -> MessageResponse:
    """Activate the account named by a verification token. Idempotent for active accounts."""
    get_auth_service(request).verify(token)
    return MessageResponse(message="Account verified successfully.")


@limiter.limit(login_limit)  # [H2] each call sends an email
@router.post("/auth/resend", response_model=MessageResponse, status_code=202)
def resend(request: Request, body: ResendRequest) -> MessageResponse:
    """Send a fresh verification link to an account that is not yet active."""
    delivered = get_auth_service(request).resend(body.user_id)
    if not delivered:
        return MessageResponse(message="Verification email could not be delivered. Try again later.")
    return MessageResponse(message="Verification email sent.")


@router.get("/auth/me", response_model=ClaimsResponse)
async def me(claims: ClaimSet = Depends(get_claims)) -> ClaimsResponse:
    """Return the verified claims of the current token."""
    return ClaimsResponse.from_claims(claims)
