"""
auth/store.py -- SQLAlchemy Core persistence layer for identity records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route, gate and service code never touches SQL directly.

Soft delete:
  Every find/list/count/update query carries "deleted_at IS NULL". A deleted
  row is never removed -- deleted_at / deleted_by stay as the audit trail and
  get_any() can still read it.

Uniqueness:
  email and cpf are unique among non-deleted rows only, so a deleted account
  does not block re-registration. Both are partial unique indexes
  (WHERE deleted_at IS NULL) on SQLite and PostgreSQL. An IntegrityError from
  either index is translated into core.errors.ConflictError naming the field;
  the raw driver error never leaves this module.

Security:
  All queries use bound parameters. Partial updates go through
  update().values(**columns) built from UserUpdate attributes mapped through
  _ATTR_TO_COLUMN -- never from raw request keys.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import User, UserUpdate
from core.config import get_settings
from core.errors import ConflictError

logger = logging.getLogger("usuarios.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_usuario = Table(
    "usuario",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("nome", String(255), nullable=False),
    Column("pronome", String(50)),
    Column("senha", Text, nullable=False),  # bcrypt digest, never plaintext
    Column("email", String(255), nullable=False),
    Column("tel", String(20)),
    Column("data_nascimento", Date),
    Column("cpf", String(11)),
    Column("active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("deleted_at", DateTime(timezone=True)),
    Column("deleted_by", String(36)),
)

_not_deleted = _usuario.c.deleted_at.is_(None)

Index(
    "uq_usuario_email",
    _usuario.c.email,
    unique=True,
    sqlite_where=_not_deleted,
    postgresql_where=_not_deleted,
)
Index(
    "uq_usuario_cpf",
    _usuario.c.cpf,
    unique=True,
    sqlite_where=_not_deleted,
    postgresql_where=_not_deleted,
)
Index("ix_usuario_created_at", _usuario.c.created_at)

# Domain attribute -> column. Attributes not listed share the column name.
_ATTR_TO_COLUMN = {
    "name": "nome",
    "pronoun": "pronome",
    "password_hash": "senha",
    "phone": "tel",
    "birth_date": "data_nascimento",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_columns(changes: dict[str, Any]) -> dict[str, Any]:
    return {_ATTR_TO_COLUMN.get(attr, attr): value for attr, value in changes.items()}


def _conflict_field(exc: IntegrityError) -> str:
    """Name the unique field an IntegrityError refers to.

    PostgreSQL reports the index name (uq_usuario_email); SQLite reports the
    column (usuario.email).
    """
    message = str(exc.orig).lower()
    for field in ("email", "cpf"):
        if f"uq_usuario_{field}" in message or f"usuario.{field}" in message:
            return field
    return "registro"


def _search_filter(search: str | None, active: bool | None) -> list:
    clauses = [_not_deleted]
    if active is not None:
        clauses.append(_usuario.c.active == active)
    if search:
        clauses.append(
            or_(
                _usuario.c.nome.icontains(search, autoescape=True),
                _usuario.c.email.icontains(search, autoescape=True),
            )
        )
    return clauses


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    The store is constructed explicitly at process start (api/main.py lifespan)
    and disposed with close(); nothing in the package reaches for a global
    connection pool.

    Usage:
        store = UserStore("sqlite:///usuarios.db")
        store.insert(User(name="Ana Silva", email="ana@x.com", password_hash=hash_password("abcdef")))
        user = store.find_active_by_email("ana@x.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups (non-deleted only)
    # ------------------------------------------------------------------

    def find_active_by_id(self, user_id: str) -> User | None:
        """Look up a non-deleted user by id. Returns None if absent or soft-deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_usuario).where((_usuario.c.id == user_id) & _not_deleted)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_active_by_email(self, email: str) -> User | None:
        """Look up a non-deleted user by exact email (case-sensitive, as stored)."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_usuario).where((_usuario.c.email == email) & _not_deleted)).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists_active_by_email(self, email: str, excluding_id: str | None = None) -> bool:
        return self._exists(_usuario.c.email == email, excluding_id)

    def exists_active_by_cpf(self, cpf: str, excluding_id: str | None = None) -> bool:
        return self._exists(_usuario.c.cpf == cpf, excluding_id)

    def _exists(self, condition, excluding_id: str | None) -> bool:
        query = select(_usuario.c.id).where(condition & _not_deleted)
        if excluding_id is not None:
            query = query.where(_usuario.c.id != excluding_id)
        with self.engine.connect() as conn:
            return conn.execute(query.limit(1)).first() is not None

    def get_any(self, user_id: str) -> User | None:
        """Read a row by id including soft-deleted ones. Audit use only."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_usuario).where(_usuario.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, user: User) -> User:
        """Insert a new record and return it as stored (timestamps filled in).

        Raises ConflictError if the email or cpf is already used by a
        non-deleted record -- including the race where a concurrent request
        inserts between the caller's pre-check and this write.
        """
        if not user.password_hash:
            raise ValueError("refusing to insert a user without a password digest")
        now = _now()
        values = {
            "id": user.id,
            "nome": user.name,
            "pronome": user.pronoun,
            "senha": user.password_hash,
            "email": user.email,
            "tel": user.phone,
            "data_nascimento": user.birth_date,
            "cpf": user.cpf,
            "active": user.active,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.connect() as conn:
                conn.execute(_usuario.insert().values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError(_conflict_field(exc)) from exc
        logger.info("User created id=%s", user.id)
        created = self.find_active_by_id(user.id)
        if created is None:
            raise RuntimeError(f"user {user.id} missing after insert")
        return created

    def update(self, user_id: str, update: UserUpdate | dict[str, Any]) -> User | None:
        """Apply a partial update to a non-deleted user and stamp updated_at.

        Only supplied fields change. Returns the updated record, or None if
        the id does not exist or is soft-deleted. Raises ConflictError on an
        email/cpf collision.
        """
        changes = update.changes() if isinstance(update, UserUpdate) else dict(update)
        columns = _to_columns(changes)
        unknown = set(columns) - set(_usuario.c.keys())
        if unknown or "id" in columns:
            raise ValueError(f"Unknown or immutable usuario columns: {sorted(unknown | ({'id'} & set(columns)))!r}")
        if not columns:
            raise ValueError("No fields to update")
        columns["updated_at"] = _now()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _usuario.update().where((_usuario.c.id == user_id) & _not_deleted).values(**columns)
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError(_conflict_field(exc)) from exc
        if result.rowcount == 0:
            return None
        return self.find_active_by_id(user_id)

    def touch(self, user_id: str) -> None:
        """Stamp updated_at on a non-deleted user (used by login)."""
        with self.engine.connect() as conn:
            conn.execute(_usuario.update().where((_usuario.c.id == user_id) & _not_deleted).values(updated_at=_now()))
            conn.commit()

    def soft_delete(self, user_id: str, deleted_by: str) -> User | None:
        """Mark a non-deleted user as deleted by ``deleted_by``.

        Returns the record as it now stands (deleted_at set), or None if it
        did not exist or was already deleted. The row is never removed.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _usuario.update()
                .where((_usuario.c.id == user_id) & _not_deleted)
                .values(deleted_at=_now(), deleted_by=deleted_by)
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        logger.info("User soft-deleted id=%s by=%s", user_id, deleted_by)
        return self.get_any(user_id)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_active(
        self,
        limit: int = 10,
        offset: int = 0,
        search: str | None = None,
        active: bool | None = None,
    ) -> list[User]:
        """Return non-deleted users, newest first.

        search matches nome or email case-insensitively; LIKE wildcards in the
        search text are escaped. active filters on the active flag when given.
        """
        query = (
            select(_usuario)
            .where(*_search_filter(search, active))
            .order_by(_usuario.c.created_at.desc(), _usuario.c.id)
            .limit(limit)
            .offset(offset)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_active(self, search: str | None = None, active: bool | None = None) -> int:
        query = select(func.count()).select_from(_usuario).where(*_search_filter(search, active))
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def stats(self, now: datetime | None = None) -> dict[str, int]:
        """Aggregate counts over non-deleted users."""
        now = now or _now()
        last_30 = now - timedelta(days=30)
        last_7 = now - timedelta(days=7)

        def _count_if(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        query = select(
            func.count().label("total_users"),
            _count_if(_usuario.c.active.is_(True)).label("active_users"),
            _count_if(_usuario.c.active.is_(False)).label("inactive_users"),
            _count_if(_usuario.c.created_at >= last_30).label("new_users_last_30_days"),
            _count_if(_usuario.c.created_at >= last_7).label("new_users_last_7_days"),
        ).where(_not_deleted)
        with self.engine.connect() as conn:
            row = conn.execute(query).one()
        return {key: int(value or 0) for key, value in row._mapping.items()}

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every value written here was UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.nome,
        pronoun=row.pronome,
        password_hash=row.senha,
        email=row.email,
        phone=row.tel,
        birth_date=row.data_nascimento,
        cpf=row.cpf,
        active=bool(row.active),
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
        deleted_at=_utc(row.deleted_at),
        deleted_by=row.deleted_by,
    )
