"""
api/routes/v1/auth.py -- Registration, login and session REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create an account; 201 with user + token
  POST /api/v1/auth/login            -- email/password login; user + token
  POST /api/v1/auth/logout           -- acknowledge logout (requires auth)
  GET  /api/v1/auth/me               -- current user record (requires auth)
  GET  /api/v1/auth/session          -- {authenticated, user}; never fails on a bad token
  POST /api/v1/auth/change-password  -- replace the password (requires auth)
  POST /api/v1/auth/refresh          -- issue a new token (requires auth)

Security:
  POST /register and POST /login are rate-limited per IP (Settings).
  AccountService.login() provides timing equalization -- use it, never inline
  find_active_by_email() + verify_password().
  Cache-Control: no-store on register and login responses, which carry a token.

Tokens are stateless and never revoked. Logout is acknowledged here and the
client discards its copy; the token stays valid until it expires.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import (
    AuthData,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    SessionData,
    SessionResponse,
    TokenData,
    TokenResponse,
    UserData,
    UserEnvelope,
    UserResponse,
)
from auth.dependencies import get_account_service, get_current_user, try_get_current_user
from auth.models import AuthenticatedUser
from auth.service import AccountService
from core.config import get_settings
from core.errors import NotFoundError

logger = logging.getLogger("usuarios.api")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register:         public, rate limited
# - POST /api/v1/auth/login:            public, rate limited
# - GET  /api/v1/auth/session:          optional auth (try_get_current_user)
# - everything else:                    requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Create an account and sign the new user in.

    All field problems come back together in one 400; an email or CPF already
    used by a live account is a 409 naming the field.
    """
    user, token = service.register_identity(
        name=body.nome,
        email=body.email,
        password=body.senha,
        pronoun=body.pronome,
        phone=body.tel,
        birth_date=body.data_nascimento,
        cpf=body.cpf,
    )
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="Usuário criado com sucesso",
        data=AuthData(user=UserResponse.from_domain(user), token=token),
    )


@limiter.limit(_settings.login_rate_limit)  # brute-force mitigation
@router.post("/auth/login", response_model=AuthResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Wrong email and wrong password produce the same 401 so account existence
    is not leaked.
    """
    user, token = service.login(body.email, body.senha)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="Login realizado com sucesso",
        data=AuthData(user=UserResponse.from_domain(user), token=token),
    )


@router.get("/auth/session", response_model=SessionResponse)
def session(
    current_user: AuthenticatedUser | None = Depends(try_get_current_user),
    service: AccountService = Depends(get_account_service),
) -> SessionResponse:
    """Report whether the request carries a usable token.

    Missing, expired and invalid tokens all answer 200 with authenticated=false,
    as does a record deleted between the token check and the read below.
    """
    if current_user is None:
        return SessionResponse(data=SessionData(authenticated=False))
    try:
        user = service.get_user(current_user.id)
    except NotFoundError:
        return SessionResponse(data=SessionData(authenticated=False))
    return SessionResponse(data=SessionData(authenticated=True, user=UserResponse.from_domain(user)))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(current_user: AuthenticatedUser = Depends(get_current_user)) -> MessageResponse:
    logger.info("Logout id=%s", current_user.id)
    return MessageResponse(message="Logout realizado com sucesso")


@router.get("/auth/me", response_model=UserEnvelope)
def me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> UserEnvelope:
    """Return the caller's full record (password digest removed)."""
    return UserEnvelope(data=UserData(user=UserResponse.from_domain(service.get_user(current_user.id))))


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Replace the caller's password. The current password must be supplied."""
    service.change_password(current_user.id, body.senha_atual, body.nova_senha)
    return MessageResponse(message="Senha alterada com sucesso")


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> TokenResponse:
    return TokenResponse(
        message="Token renovado com sucesso",
        data=TokenData(token=service.refresh_token(current_user.id)),
    )
