"""
auth/models.py -- Domain dataclasses for identity records.

Dataclasses own the domain shape; the store and the routes do the I/O. The
only logic kept here is what belongs to the record itself: field validation
and the transport-safe projection that drops the password digest.

Naming: attributes are English; the wire and table names ("nome", "pronome",
"tel", "data_nascimento", "senha") appear only in redacted_view(), in
FieldError.field (clients map errors to form inputs by those names) and in
auth/store.py.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any

from core.cpf import is_valid_cpf, normalize_cpf
from core.errors import FieldError

NAME_MIN, NAME_MAX = 2, 255
PASSWORD_MIN, PASSWORD_MAX = 6, 255
EMAIL_MAX = 255
PRONOUN_MAX = 50
PHONE_MAX = 20

# local@domain.tld -- no whitespace, exactly one "@", a dot in the domain part.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _new_id() -> str:
    return str(uuid.uuid4())


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


# ---------------------------------------------------------------------------
# Field rules -- shared by full records and partial updates
# ---------------------------------------------------------------------------


def _check_name(name: str | None, errors: list[FieldError]) -> None:
    if not name or not name.strip():
        errors.append(FieldError("nome", "Nome é obrigatório"))
    elif len(name.strip()) < NAME_MIN:
        errors.append(FieldError("nome", f"Nome deve ter pelo menos {NAME_MIN} caracteres"))
    elif len(name) > NAME_MAX:
        errors.append(FieldError("nome", f"Nome deve ter no máximo {NAME_MAX} caracteres"))


def _check_email(email: str | None, errors: list[FieldError]) -> None:
    if not email:
        errors.append(FieldError("email", "Email é obrigatório"))
    elif len(email) > EMAIL_MAX:
        errors.append(FieldError("email", f"Email deve ter no máximo {EMAIL_MAX} caracteres"))
    elif not is_valid_email(email):
        errors.append(FieldError("email", "Email deve ter um formato válido"))


def check_password(password: str, errors: list[FieldError], field_name: str = "senha") -> None:
    """Append a FieldError when ``password`` is outside PASSWORD_MIN..PASSWORD_MAX."""
    if len(password) < PASSWORD_MIN:
        errors.append(FieldError(field_name, f"Senha deve ter pelo menos {PASSWORD_MIN} caracteres"))
    elif len(password) > PASSWORD_MAX:
        errors.append(FieldError(field_name, f"Senha deve ter no máximo {PASSWORD_MAX} caracteres"))


def _check_optional(
    pronoun: str | None,
    phone: str | None,
    birth_date: date | None,
    cpf: str | None,
    today: date,
    errors: list[FieldError],
) -> None:
    if pronoun is not None and len(pronoun) > PRONOUN_MAX:
        errors.append(FieldError("pronome", f"Pronome deve ter no máximo {PRONOUN_MAX} caracteres"))
    if phone is not None and len(phone) > PHONE_MAX:
        errors.append(FieldError("tel", f"Telefone deve ter no máximo {PHONE_MAX} caracteres"))
    if birth_date is not None and birth_date > today:
        errors.append(FieldError("data_nascimento", "Data de nascimento não pode ser no futuro"))
    if cpf is not None and not is_valid_cpf(cpf):
        errors.append(FieldError("cpf", "CPF inválido"))


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class User:
    """One account row of the ``usuario`` table.

    id is generated on construction when not supplied, so a record has its
    identity before it is written. password_hash is always a bcrypt digest;
    the raw password never lives on this object.

    deleted_at / deleted_by are set together by a soft delete. A record with
    deleted_at set is invisible to every normal lookup but stays in the table
    as an audit trail.
    """

    name: str
    email: str
    password_hash: str | None = None
    id: str = field(default_factory=_new_id)
    pronoun: str | None = None
    phone: str | None = None
    birth_date: date | None = None
    cpf: str | None = None  # digits only
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    deleted_by: str | None = None

    def __post_init__(self) -> None:
        if self.cpf:
            self.cpf = normalize_cpf(self.cpf)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def validate(self, password: str | None = None, today: date | None = None) -> list[FieldError]:
        """Return every field problem on this record (empty list means valid).

        ``password`` is the plaintext about to be hashed onto the record, if
        any; its length rule only applies when a password is being set.
        """
        errors: list[FieldError] = []
        _check_name(self.name, errors)
        _check_email(self.email, errors)
        if password is not None:
            check_password(password, errors)
        _check_optional(self.pronoun, self.phone, self.birth_date, self.cpf, today or _today(), errors)
        return errors

    def redacted_view(self) -> dict[str, Any]:
        """Transport-safe projection: every field except the password digest."""
        return {
            "id": self.id,
            "nome": self.name,
            "pronome": self.pronoun,
            "email": self.email,
            "tel": self.phone,
            "data_nascimento": _iso(self.birth_date),
            "cpf": self.cpf,
            "active": self.active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
            "deleted_by": self.deleted_by,
        }


@dataclass
class UserUpdate:
    """Typed partial update. A field left as None is not touched.

    password_hash is set only by the password-change flow, never from profile
    input.
    """

    name: str | None = None
    pronoun: str | None = None
    email: str | None = None
    phone: str | None = None
    birth_date: date | None = None
    cpf: str | None = None
    active: bool | None = None
    password_hash: str | None = None

    def __post_init__(self) -> None:
        if self.cpf:
            self.cpf = normalize_cpf(self.cpf)

    def changes(self) -> dict[str, Any]:
        """Return {attribute: value} for the supplied fields only."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def is_empty(self) -> bool:
        return not self.changes()

    def validate(self, today: date | None = None) -> list[FieldError]:
        """Apply the record's field rules to the supplied fields only."""
        errors: list[FieldError] = []
        if self.name is not None:
            _check_name(self.name, errors)
        if self.email is not None:
            _check_email(self.email, errors)
        _check_optional(self.pronoun, self.phone, self.birth_date, self.cpf, today or _today(), errors)
        return errors


@dataclass(frozen=True)
class AuthenticatedUser:
    """The identity the auth gate attaches to a request after it verified the token
    and re-read the live record.

    is_admin comes from configuration, not from the record -- there is no role
    column in the ``usuario`` table.
    """

    id: str
    email: str
    name: str
    active: bool
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: User, is_admin: bool = False) -> AuthenticatedUser:
        return cls(id=user.id, email=user.email, name=user.name, active=user.active, is_admin=is_admin)
