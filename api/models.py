"""
API request and response models for the Usuarios REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models check shape and types only. Field rules (name length, email
format, password length, CPF checksum, birth date) live on the domain record
so that every problem is collected into one ValidationError and reported in
a single 400 response.

JSON field names follow the ``usuario`` table (nome, pronome, senha, tel,
data_nascimento, cpf) -- the SPA sends and reads those names.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User, UserUpdate
from auth.service import Pagination

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    nome: str
    senha: str
    email: str
    pronome: Optional[str] = None
    tel: Optional[str] = None
    data_nascimento: Optional[date] = None
    cpf: Optional[str] = None

    @field_validator("cpf", mode="before")
    @classmethod
    def empty_cpf_is_absent(cls, value):
        """The registration form submits "" when the CPF input is left empty."""
        return _blank_to_none(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str
    senha: str = Field(max_length=255)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password."""

    senha_atual: str = Field(max_length=255)
    nova_senha: str


class UserUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Omitted or null fields are left unchanged.

    There is no ``active`` field: the flag only changes through the
    activate and deactivate routes.
    """

    nome: Optional[str] = None
    pronome: Optional[str] = None
    email: Optional[str] = None
    tel: Optional[str] = None
    data_nascimento: Optional[date] = None
    cpf: Optional[str] = None

    @field_validator("cpf", mode="before")
    @classmethod
    def empty_cpf_is_absent(cls, value):
        return _blank_to_none(value)

    def to_update(self) -> UserUpdate:
        return UserUpdate(
            name=self.nome,
            pronoun=self.pronome,
            email=self.email,
            phone=self.tel,
            birth_date=self.data_nascimento,
            cpf=self.cpf,
        )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Transport view of a user. There is no password field of any kind."""

    model_config = ConfigDict(frozen=True)

    id: str
    nome: str
    pronome: Optional[str] = None
    email: str
    tel: Optional[str] = None
    data_nascimento: Optional[str] = None
    cpf: Optional[str] = None
    active: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None
    deleted_by: Optional[str] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        """Build the response from the record's redacted view, never from the record itself."""
        return cls(**user.redacted_view())


class PaginationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    currentPage: int
    totalPages: int
    totalItems: int
    itemsPerPage: int
    hasNextPage: bool
    hasPrevPage: bool

    @classmethod
    def from_domain(cls, page: Pagination) -> "PaginationResponse":
        return cls(
            currentPage=page.current_page,
            totalPages=page.total_pages,
            totalItems=page.total_items,
            itemsPerPage=page.items_per_page,
            hasNextPage=page.has_next_page,
            hasPrevPage=page.has_prev_page,
        )


class UserStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_users: int
    active_users: int
    inactive_users: int
    new_users_last_30_days: int
    new_users_last_7_days: int


# Payloads carried under "data" -------------------------------------------


class AuthData(BaseModel):
    user: UserResponse
    token: str


class UserData(BaseModel):
    user: UserResponse


class TokenData(BaseModel):
    token: str


class SessionData(BaseModel):
    authenticated: bool
    user: Optional[UserResponse] = None


class UserListData(BaseModel):
    users: list[UserResponse]
    pagination: PaginationResponse


class StatsData(BaseModel):
    stats: UserStatsResponse


# Envelopes ---------------------------------------------------------------


class MessageResponse(BaseModel):
    """Success envelope with no payload."""

    success: bool = True
    message: Optional[str] = None


class AuthResponse(MessageResponse):
    data: AuthData


class UserEnvelope(MessageResponse):
    data: UserData


class TokenResponse(MessageResponse):
    data: TokenData


class SessionResponse(MessageResponse):
    data: SessionData


class UserListResponse(MessageResponse):
    data: UserListData


class StatsResponse(MessageResponse):
    data: StatsData


class FieldErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses.

    ``message`` is what the SPA shows in its toast; ``errors`` lists every
    field problem when the failure is a validation error.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    code: str
    message: str
    errors: Optional[list[FieldErrorDetail]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health.

    status is "healthy" when every component reports "ok", else "degraded".
    """

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    timestamp: str
    uptime_seconds: float
    components: dict[str, str]
