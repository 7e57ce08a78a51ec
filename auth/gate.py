"""
auth/gate.py -- Request authentication and authorization decisions.

Framework-free: the functions here take a raw token string and a UserStore
and either return the resolved identity or raise a core.errors variant.
auth/dependencies.py adapts them to FastAPI Depends().

Per request the gate walks:

  NoToken -> TokenPresent -> SignatureInvalid | Expired | Verified
  Verified -> UserMissing | UserInactive | Authorized

  NoToken           mandatory: UnauthorizedError("token required")
                    optional:  no identity
  SignatureInvalid  ForbiddenError   (403)
  Expired           UnauthorizedError (401)
  UserMissing       UnauthorizedError -- the id in the token has no live,
                    non-deleted record
  UserInactive      UnauthorizedError
  Authorized        AuthenticatedUser

Tokens are never revoked, so the record is re-read on every request; that
read is what makes deactivation and soft delete take effect immediately.

After Authorized, routes apply the authorization decisions below:
authorize_owner_or_admin(), require_admin(), require_not_self().

Layer rule: no imports from api/.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Collection

from sqlalchemy.exc import SQLAlchemyError

from auth.models import AuthenticatedUser
from auth.store import UserStore
from auth.tokens import InvalidTokenError, TokenExpiredError, decode_access_token
from core.errors import (
    AccountError,
    FieldError,
    ForbiddenError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger("usuarios.auth")


class RejectReason(str, enum.Enum):
    """Terminal states in which the gate refuses a request."""

    NO_TOKEN = "no_token"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"
    USER_MISSING = "user_missing"
    USER_INACTIVE = "user_inactive"


def _reject(reason: RejectReason, error: AccountError) -> AccountError:
    logger.debug("Authentication rejected (%s)", reason.value)
    return error


def authenticate(
    token: str | None,
    store: UserStore,
    admin_ids: Collection[str] = (),
) -> AuthenticatedUser:
    """Resolve ``token`` to a live, active identity or raise.

    Raises:
        UnauthorizedError: no token, expired token, account missing or inactive.
        ForbiddenError:    token signature or structure is invalid.
    """
    if not token:
        raise _reject(RejectReason.NO_TOKEN, UnauthorizedError("Token de acesso requerido"))

    try:
        claims = decode_access_token(token)
    except TokenExpiredError as exc:
        raise _reject(RejectReason.EXPIRED, UnauthorizedError("Token expirado")) from exc
    except InvalidTokenError as exc:
        raise _reject(RejectReason.SIGNATURE_INVALID, ForbiddenError("Token inválido")) from exc

    user = store.find_active_by_id(claims.id)
    if user is None:
        raise _reject(RejectReason.USER_MISSING, UnauthorizedError("Usuário não encontrado ou inativo"))
    if not user.active:
        raise _reject(RejectReason.USER_INACTIVE, UnauthorizedError("Usuário inativo"))

    return AuthenticatedUser.from_user(user, is_admin=user.id in admin_ids)


def authenticate_optional(
    token: str | None,
    store: UserStore,
    admin_ids: Collection[str] = (),
) -> AuthenticatedUser | None:
    """Like authenticate(), but every failure means "no identity".

    Gate rejections and store errors during the lookup both answer None; the
    endpoint it guards is meant to work anonymously.
    """
    if not token:
        return None
    try:
        return authenticate(token, store, admin_ids)
    except AccountError:
        return None
    except SQLAlchemyError:
        logger.warning("Optional authentication skipped: user lookup failed", exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Authorization decisions (evaluated after Authorized)
# ---------------------------------------------------------------------------


def authorize_owner_or_admin(identity: AuthenticatedUser, target_id: str) -> None:
    """Allow the action only on the actor's own record, or for an administrator."""
    if identity.is_admin or identity.id == target_id:
        return
    raise ForbiddenError("Acesso negado. Você só pode acessar seus próprios dados.")


def require_admin(identity: AuthenticatedUser) -> None:
    if not identity.is_admin:
        raise ForbiddenError("Acesso negado. Privilégios de administrador necessários.")


_SELF_ACTION_MESSAGES = {
    "delete": "Você não pode deletar sua própria conta",
    "deactivate": "Você não pode desativar sua própria conta",
}


def require_not_self(identity: AuthenticatedUser, target_id: str, action: str) -> None:
    """Reject delete/deactivate aimed at the actor's own account.

    Raises ValidationError (a request the user can correct) rather than
    ForbiddenError: the actor is allowed to touch the record, just not this way.
    """
    if identity.id != target_id:
        return
    message = _SELF_ACTION_MESSAGES.get(action, "Operação não permitida na própria conta")
    raise ValidationError([FieldError("id", message)], message)
