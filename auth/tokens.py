"""
auth/tokens.py -- JWT issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       id, email, nome and an expiry. There is no revocation list -- a token
       stays valid for its whole lifetime, and the auth gate re-reads the
       account on every request to catch deactivation and deletion.

  Failures are typed: an expired token raises TokenExpiredError, anything
       else (bad signature, garbage input, missing claims) raises
       InvalidTokenError. The gate needs to tell them apart -- expired is a
       401, invalid is a 403.

  SECRET_KEY: sourced from core.config.get_settings(), which refuses to start
       in production without one and rejects keys shorter than 32 chars.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User

_settings = get_settings()

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("id", "email", "nome", "exp")


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the embedded expiry is in the past."""


class InvalidTokenError(TokenError):
    """Signature mismatch, malformed token, or missing identity claims."""


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified token."""

    id: str
    email: str
    name: str
    expires_at: datetime


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    """Encode a signed JWT for ``user``.

    Args:
        user:          The identity record to embed (id, email, name).
        expires_delta: Lifetime of the token. Defaults to
                       Settings.token_expire_seconds (7 days). Tests pass a
                       negative delta to mint an already-expired token.
    """
    if expires_delta is None:
        expires_delta = timedelta(seconds=_settings.token_expire_seconds)
    now = datetime.now(timezone.utc)
    payload = {
        "id": user.id,
        "email": user.email,
        "nome": user.name,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    """Verify ``token`` and return its claims.

    Raises:
        TokenExpiredError: the token is past its expiry.
        InvalidTokenError: any other verification failure.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("token expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("invalid token") from exc

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise InvalidTokenError("token is missing identity claims")
    return TokenClaims(
        id=str(payload["id"]),
        email=payload["email"],
        name=payload["nome"],
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Any other scheme, or an empty token, counts as no token.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
