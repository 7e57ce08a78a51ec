"""
core/errors.py -- Closed error taxonomy for account and identity operations.

Every failure the auth/ layer can report is one of the variants below. Each
variant carries a stable machine-readable ``code``; the HTTP boundary
(api/main.py) is the only place that maps a variant to a status code.
Nothing in this module knows about HTTP.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """One field-level validation problem, safe to show to the end user."""

    field: str
    message: str


class AccountError(Exception):
    """Base class for every error raised by account and identity operations."""

    code = "account_error"
    default_message = "Erro na operação"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccountError):
    """One or more fields are invalid. Carries every problem, never just the first."""

    code = "validation_error"
    default_message = "Dados inválidos"

    def __init__(self, errors: list[FieldError], message: str | None = None) -> None:
        self.errors = list(errors)
        super().__init__(message)


class ConflictError(AccountError):
    """A uniqueness rule (email, cpf) would be violated."""

    code = "conflict"
    default_message = "Conflito de dados"

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field.capitalize()} já está em uso")


class InvalidCredentialsError(AccountError):
    """Login or password change rejected.

    The message is identical for an unknown email and a wrong password so
    callers cannot enumerate accounts.
    """

    code = "invalid_credentials"
    default_message = "Credenciais inválidas"


class UnauthorizedError(AccountError):
    """Missing or expired token, or the account behind it is gone or inactive."""

    code = "unauthorized"
    default_message = "Não autorizado"


class InactiveAccountError(UnauthorizedError):
    """The password matched but the account is deactivated."""

    code = "inactive"
    default_message = "Usuário inativo"


class ForbiddenError(AccountError):
    """Token signature invalid, or the ownership/role check failed."""

    code = "forbidden"
    default_message = "Acesso negado"


class NotFoundError(AccountError):
    """No live, non-deleted account has the requested id."""

    code = "not_found"
    default_message = "Usuário não encontrado"
