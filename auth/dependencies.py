"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The token is read from the "Authorization: Bearer <token>" header only; the
SPA keeps it in localStorage and sends it on every call. There is no cookie
or API key path.

try_get_current_user() is the soft variant (returns None on any failure).
get_current_user() raises the gate's UnauthorizedError/ForbiddenError, which
api/main.py maps to 401/403.

These helpers are plain ``def`` functions: the store lookup is blocking I/O,
and FastAPI runs sync dependencies in its threadpool so the event loop is
never held by a database call.

Layer rule: may import from fastapi (Request) because this module is part of
the FastAPI dependency injection system; no imports from api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.gate import authenticate, authenticate_optional
from auth.models import AuthenticatedUser
from auth.service import AccountService
from auth.store import UserStore
from auth.tokens import extract_bearer_token
from core.config import get_settings


def _admin_ids() -> frozenset[str]:
    return frozenset(get_settings().admin_user_ids)


def get_user_store(request: Request) -> UserStore:
    """Return the UserStore constructed by the application lifespan."""
    return request.app.state.user_store


def get_account_service(request: Request) -> AccountService:
    return AccountService(get_user_store(request))


def try_get_current_user(request: Request) -> AuthenticatedUser | None:
    """Authenticate the request if it carries a usable token, else return None.

    Never raises -- callers that need a hard failure use get_current_user().
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    return authenticate_optional(token, get_user_store(request), _admin_ids())


def get_current_user(request: Request) -> AuthenticatedUser:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: AuthenticatedUser = Depends(get_current_user)): ...
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    user = authenticate(token, get_user_store(request), _admin_ids())
    request.state.user = user
    return user
