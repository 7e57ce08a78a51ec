"""
auth/service.py -- Account operations over the identity store.

AccountService is the one place that combines the record rules
(auth/models.py), the credential hasher (auth/passwords.py), the token
service (auth/tokens.py) and the store (auth/store.py). Routes call it and
translate nothing: every failure is already a core.errors variant.

Security:
  login() gives the same InvalidCredentialsError for an unknown email and a
  wrong password, and runs bcrypt in both cases (against DUMMY_HASH when the
  email is unknown) so response time does not reveal which one it was. The
  inactive check runs only after the password matched, so an inactive
  account is not disclosed to someone who does not know its password.

  Plaintext passwords are never stored, returned or logged.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date

from auth.models import User, UserUpdate, check_password
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import create_access_token
from core.errors import (
    ConflictError,
    FieldError,
    InactiveAccountError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger("usuarios.auth")

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1


class AccountService:
    """Registration, login, password and profile lifecycle for ``usuario`` records."""

    def __init__(self, store: UserStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register_identity(
        self,
        *,
        name: str,
        email: str,
        password: str,
        pronoun: str | None = None,
        phone: str | None = None,
        birth_date: date | None = None,
        cpf: str | None = None,
    ) -> tuple[User, str]:
        """Validate, hash and persist a new account; return it with a fresh token.

        Raises:
            ValidationError: one or more fields are invalid (all are reported).
            ConflictError:   email or cpf already used by a non-deleted account.
        """
        user = User(
            name=name,
            email=email,
            pronoun=pronoun,
            phone=phone,
            birth_date=birth_date,
            cpf=cpf,
        )
        errors = user.validate(password=password)
        if errors:
            raise ValidationError(errors)

        if self._store.exists_active_by_email(user.email):
            raise ConflictError("email", "Email já está em uso")
        if user.cpf and self._store.exists_active_by_cpf(user.cpf):
            raise ConflictError("cpf", "CPF já está em uso")

        user.password_hash = hash_password(password)
        created = self._store.insert(user)
        logger.info("Registered user id=%s", created.id)
        return created, create_access_token(created)

    def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and return the account with a new token.

        A successful login stamps updated_at on the record.

        Raises:
            InvalidCredentialsError: unknown email or wrong password (same error).
            InactiveAccountError:    the password matched but the account is inactive.
        """
        user = self._store.find_active_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            verify_password(password, DUMMY_HASH)
            raise InvalidCredentialsError()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.active:
            raise InactiveAccountError()

        self._store.touch(user.id)
        logger.info("Login succeeded id=%s", user.id)
        current = self._store.find_active_by_id(user.id) or user
        return current, create_access_token(current)

    def refresh_token(self, user_id: str) -> str:
        """Issue a new token for a live, active account."""
        user = self.get_user(user_id)
        if not user.active:
            raise InactiveAccountError()
        return create_access_token(user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """Replace the password after checking the current one.

        Raises:
            NotFoundError:           the account does not exist (or is deleted).
            InvalidCredentialsError: current_password does not match.
            ValidationError:         new_password is outside 6..255 chars.
        """
        user = self.get_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Senha atual incorreta")

        errors: list[FieldError] = []
        check_password(new_password, errors, field_name="nova_senha")
        if errors:
            raise ValidationError(errors)

        if self._store.update(user_id, UserUpdate(password_hash=hash_password(new_password))) is None:
            raise NotFoundError()
        logger.info("Password changed id=%s", user_id)

    # ------------------------------------------------------------------
    # Profile lifecycle
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> User:
        user = self._store.find_active_by_id(user_id)
        if user is None:
            raise NotFoundError()
        return user

    def update_profile(self, user_id: str, update: UserUpdate) -> User:
        """Apply a partial profile update; only supplied fields change.

        Raises:
            NotFoundError:   the account does not exist (or is deleted).
            ValidationError: nothing to update, or a supplied field is invalid.
            ConflictError:   the new email or cpf belongs to another account.
        """
        if update.password_hash is not None:
            raise ValueError("password changes go through change_password()")
        self.get_user(user_id)
        if update.is_empty():
            raise ValidationError([], "Nenhum campo para atualizar")
        errors = update.validate()
        if errors:
            raise ValidationError(errors)

        if update.email and self._store.exists_active_by_email(update.email, excluding_id=user_id):
            raise ConflictError("email", "Email já está em uso")
        if update.cpf and self._store.exists_active_by_cpf(update.cpf, excluding_id=user_id):
            raise ConflictError("cpf", "CPF já está em uso")

        updated = self._store.update(user_id, update)
        if updated is None:
            raise NotFoundError()
        return updated

    def set_active(self, user_id: str, active: bool) -> User:
        updated = self._store.update(user_id, UserUpdate(active=active))
        if updated is None:
            raise NotFoundError()
        logger.info("User id=%s %s", user_id, "activated" if active else "deactivated")
        return updated

    def soft_delete(self, user_id: str, deleted_by: str) -> User:
        """Mark the account deleted by ``deleted_by``. The row is kept."""
        deleted = self._store.soft_delete(user_id, deleted_by)
        if deleted is None:
            raise NotFoundError()
        return deleted

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        active: bool | None = None,
    ) -> tuple[list[User], Pagination]:
        """Return one page of non-deleted users, newest first, with page metadata."""
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        users = self._store.list_active(limit=limit, offset=(page - 1) * limit, search=search, active=active)
        total = self._store.count_active(search=search, active=active)
        pagination = Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit,
        )
        return users, pagination

    def user_stats(self) -> dict[str, int]:
        return self._store.stats()
