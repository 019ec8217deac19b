"""
api/routes/v1/users.py -- Registration, user management and company endpoints.

Routes:
  POST   /api/v1/users                               -- public self-registration (User role only)
  GET    /api/v1/users                               -- list users (Admin, Super)
  PATCH  /api/v1/users/me                            -- update my own account (role is ignored)
  DELETE /api/v1/users/me                            -- delete my own account
  GET    /api/v1/users/company                       -- my parent company (User)
  POST   /api/v1/users/company                       -- register a User employee under me (Admin)
  GET    /api/v1/users/company/employees             -- list my employees (Admin, Super)
  PATCH  /api/v1/users/company/employees/{id}        -- update one of my employees (Admin)
  DELETE /api/v1/users/company/employees/{id}        -- delete one of my employees (Admin)
  GET    /api/v1/users/{id}                          -- user details (any role)
  PATCH  /api/v1/users/{id}                          -- update any user (Super)
  DELETE /api/v1/users/{id}                          -- delete any user (Super)
  PATCH  /api/v1/users/{id}/activation               -- activate / deactivate (Super)

Every protected route resolves claims with get_claims() and then calls
authorize() with its Action and target id. The /me and /company routes are
declared before /{user_id} so the literal paths win.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    ActivationPatch,
    RegistrationResponse,
    UserCreate,
    UserPatch,
    UserResponse,
    UserSummary,
)
from auth.dependencies import authorize, get_auth_service, get_claims
from auth.models import IdentityUpdate, Registration, RegistrationResult
from auth.policy import Action
from auth.service import AuthService
from auth.tokens import ClaimSet

router = APIRouter()


# ---------------------------------------------------------------------------
# Public registration
# ---------------------------------------------------------------------------


@router.post("/users", response_model=RegistrationResponse, status_code=201)
def register(request: Request, body: UserCreate) -> RegistrationResponse:
    """Create an unverified account and email its verification link. User role only."""
    service = get_auth_service(request)
    result = service.register_self(_to_registration(body))
    return _registration_response(service, result)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserSummary])
def list_users(request: Request, claims: ClaimSet = Depends(get_claims)) -> list[UserSummary]:
    authorize(request, claims, Action.LIST_USERS)
    return [UserSummary(id=u.id, username=u.username) for u in get_auth_service(request).list_users()]


# ---------------------------------------------------------------------------
# Self-scoped
# ---------------------------------------------------------------------------


@router.patch("/users/me", response_model=UserResponse)
def update_me(request: Request, body: UserPatch, claims: ClaimSet = Depends(get_claims)) -> UserResponse:
    """Update my own username, email or password. Role changes are ignored here."""
    authorize(request, claims, Action.UPDATE_SELF, claims.user_id)
    changes = _to_update(body)
    changes.role = None
    updated = get_auth_service(request).update_user(claims.user_id, changes)
    return UserResponse.from_identity(updated)


@router.delete("/users/me", status_code=204)
def delete_me(request: Request, claims: ClaimSet = Depends(get_claims)) -> Response:
    authorize(request, claims, Action.DELETE_SELF, claims.user_id)
    get_auth_service(request).delete_user(claims.user_id)
    resp = Response(status_code=204)
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# Company (parent / employee)
# ---------------------------------------------------------------------------


@router.get("/users/company", response_model=UserResponse)
def my_company(request: Request, claims: ClaimSet = Depends(get_claims)) -> UserResponse:
    """Return the company account that owns the caller."""
    authorize(request, claims, Action.VIEW_PARENT, claims.user_id)
    return UserResponse.from_identity(get_auth_service(request).parent_of(claims.user_id))


@router.post("/users/company", response_model=RegistrationResponse, status_code=201)
def register_employee(
    request: Request,
    body: UserCreate,
    claims: ClaimSet = Depends(get_claims),
) -> RegistrationResponse:
    """Register an employee account owned by the calling company."""
    authorize(request, claims, Action.REGISTER_EMPLOYEE, claims.user_id)
    service = get_auth_service(request)
    result = service.register_employee(claims.user_id, _to_registration(body))
    return _registration_response(service, result)


@router.get("/users/company/employees", response_model=list[UserResponse])
def list_employees(request: Request, claims: ClaimSet = Depends(get_claims)) -> list[UserResponse]:
    authorize(request, claims, Action.LIST_EMPLOYEES, claims.user_id)
    return [UserResponse.from_identity(u) for u in get_auth_service(request).children_of(claims.user_id)]


@router.patch("/users/company/employees/{user_id}", response_model=UserResponse)
def update_employee(
    request: Request,
    user_id: int,
    body: UserPatch,
    claims: ClaimSet = Depends(get_claims),
) -> UserResponse:
    """Update an employee. Role changes are not allowed through this route."""
    authorize(request, claims, Action.MANAGE_EMPLOYEE, user_id)
    changes = _to_update(body)
    changes.role = None
    return UserResponse.from_identity(get_auth_service(request).update_user(user_id, changes))


@router.delete("/users/company/employees/{user_id}", status_code=204)
def delete_employee(request: Request, user_id: int, claims: ClaimSet = Depends(get_claims)) -> Response:
    authorize(request, claims, Action.MANAGE_EMPLOYEE, user_id)
    get_auth_service(request).delete_user(user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# By id
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int, claims: ClaimSet = Depends(get_claims)) -> UserResponse:
    authorize(request, claims, Action.VIEW_USER, user_id)
    return UserResponse.from_identity(get_auth_service(request).get_user(user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    claims: ClaimSet = Depends(get_claims),
) -> UserResponse:
    authorize(request, claims, Action.UPDATE_USER, user_id)
    return UserResponse.from_identity(get_auth_service(request).update_user(user_id, _to_update(body)))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: int, claims: ClaimSet = Depends(get_claims)) -> Response:
    authorize(request, claims, Action.DELETE_USER, user_id)
    get_auth_service(request).delete_user(user_id)
    return Response(status_code=204)


@router.patch("/users/{user_id}/activation", response_model=UserResponse)
def change_activation(
    request: Request,
    user_id: int,
    body: ActivationPatch,
    claims: ClaimSet = Depends(get_claims),
) -> UserResponse:
    authorize(request, claims, Action.CHANGE_ACTIVATION, user_id)
    return UserResponse.from_identity(get_auth_service(request).set_activation(user_id, body.is_active))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_registration(body: UserCreate) -> Registration:
    return Registration(email=body.email, username=body.username, password=body.password, role=body.role)


def _to_update(body: UserPatch) -> IdentityUpdate:
    return IdentityUpdate(username=body.username, email=body.email, password=body.password, role=body.role)


def _registration_response(service: AuthService, result: RegistrationResult) -> RegistrationResponse:
    # Re-read so created_at reflects what the store wrote.
    created = service.get_user(result.identity.id)
    return RegistrationResponse(user=UserResponse.from_identity(created), verification_sent=result.delivered)
