"""
tests/test_user_store.py -- Integration tests for auth/store.py against in-memory SQLite.

Covers:
  - insert + lookups; the stored record has timestamps and no plaintext
  - soft delete hides the record from every normal lookup but keeps the row
  - email/cpf uniqueness among non-deleted rows only (partial unique indexes)
  - partial update semantics and column allow-list
  - listing: order, pagination window, search (LIKE wildcards escaped), active filter
  - stats
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import User, UserUpdate
from auth.passwords import hash_password
from auth.store import UserStore
from core.errors import ConflictError

CPF_A = "12345678909"


@pytest.fixture
def digest() -> str:
    return hash_password("senha123")


def _user(digest: str, **fields) -> User:
    fields.setdefault("name", "Carlos Dias")
    fields.setdefault("email", "carlos@example.com")
    return User(password_hash=digest, **fields)


class TestInsertAndLookup:
    def test_insert_returns_stored_record(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest, cpf=CPF_A))
        assert created.created_at is not None
        assert created.updated_at == created.created_at
        assert created.created_at.tzinfo is not None
        assert created.cpf == CPF_A
        assert created.active is True

    def test_lookups(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        assert store.find_active_by_id(created.id).email == "carlos@example.com"
        assert store.find_active_by_email("carlos@example.com").id == created.id
        assert store.find_active_by_id("missing") is None
        assert store.find_active_by_email("nobody@example.com") is None

    def test_email_lookup_is_exact(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest))
        assert store.find_active_by_email("CARLOS@example.com") is None

    def test_digest_stored_not_plaintext(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        assert created.password_hash == digest

    def test_insert_without_digest_refused(self, store: UserStore) -> None:
        with pytest.raises(ValueError):
            store.insert(User(name="Sem Senha", email="x@example.com"))


class TestUniqueness:
    def test_duplicate_email_is_conflict(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest))
        with pytest.raises(ConflictError) as exc_info:
            store.insert(_user(digest, name="Outro"))
        assert exc_info.value.field == "email"

    def test_duplicate_cpf_is_conflict(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest, cpf=CPF_A))
        with pytest.raises(ConflictError) as exc_info:
            store.insert(_user(digest, email="other@example.com", cpf=CPF_A))
        assert exc_info.value.field == "cpf"

    def test_many_users_without_cpf(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest, email="a@example.com"))
        store.insert(_user(digest, email="b@example.com"))
        assert store.count_active() == 2

    def test_deleted_record_frees_email_and_cpf(self, store: UserStore, digest: str) -> None:
        first = store.insert(_user(digest, cpf=CPF_A))
        store.soft_delete(first.id, deleted_by=first.id)
        assert not store.exists_active_by_email("carlos@example.com")
        assert not store.exists_active_by_cpf(CPF_A)
        second = store.insert(_user(digest, cpf=CPF_A))
        assert second.id != first.id

    def test_exists_excluding_self(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest, cpf=CPF_A))
        assert store.exists_active_by_email("carlos@example.com")
        assert not store.exists_active_by_email("carlos@example.com", excluding_id=created.id)
        assert not store.exists_active_by_cpf(CPF_A, excluding_id=created.id)

    def test_update_into_taken_email_is_conflict(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest, email="a@example.com"))
        b = store.insert(_user(digest, email="b@example.com"))
        with pytest.raises(ConflictError):
            store.update(b.id, UserUpdate(email="a@example.com"))


class TestSoftDelete:
    def test_hidden_from_lookups_but_row_kept(self, store: UserStore, digest: str) -> None:
        actor = store.insert(_user(digest, email="actor@example.com"))
        target = store.insert(_user(digest))
        deleted = store.soft_delete(target.id, deleted_by=actor.id)

        assert deleted is not None
        assert deleted.is_deleted
        assert deleted.deleted_by == actor.id
        assert store.find_active_by_id(target.id) is None
        assert store.find_active_by_email("carlos@example.com") is None
        assert [u.id for u in store.list_active()] == [actor.id]
        assert store.count_active() == 1
        assert store.get_any(target.id).deleted_at is not None

    def test_delete_twice_returns_none(self, store: UserStore, digest: str) -> None:
        target = store.insert(_user(digest))
        assert store.soft_delete(target.id, deleted_by=target.id) is not None
        assert store.soft_delete(target.id, deleted_by=target.id) is None

    def test_deleted_record_cannot_be_updated(self, store: UserStore, digest: str) -> None:
        target = store.insert(_user(digest))
        store.soft_delete(target.id, deleted_by=target.id)
        assert store.update(target.id, UserUpdate(name="Zumbi")) is None


class TestUpdate:
    def test_partial_update_changes_only_supplied_fields(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest, pronoun="ele", phone="1199999999"))
        updated = store.update(created.id, UserUpdate(name="Carlos Novo"))
        assert updated.name == "Carlos Novo"
        assert updated.pronoun == "ele"
        assert updated.phone == "1199999999"
        assert updated.email == created.email
        assert updated.updated_at >= created.updated_at

    def test_dict_update_uses_domain_attribute_names(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        updated = store.update(created.id, {"active": False})
        assert updated.active is False

    def test_unknown_or_immutable_fields_rejected(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        with pytest.raises(ValueError):
            store.update(created.id, {"is_admin": True})
        with pytest.raises(ValueError):
            store.update(created.id, {"id": "other"})

    def test_empty_update_rejected(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        with pytest.raises(ValueError):
            store.update(created.id, UserUpdate())

    def test_missing_id_returns_none(self, store: UserStore) -> None:
        assert store.update("missing", UserUpdate(name="Nada")) is None

    def test_touch_stamps_updated_at(self, store: UserStore, digest: str) -> None:
        created = store.insert(_user(digest))
        store.touch(created.id)
        assert store.find_active_by_id(created.id).updated_at >= created.updated_at


class TestListing:
    @pytest.fixture
    def populated(self, store: UserStore, digest: str) -> list[User]:
        users = [
            store.insert(_user(digest, name="Ana Paula", email="ana@example.com")),
            store.insert(_user(digest, name="Bruno Costa", email="bruno@example.com", active=False)),
            store.insert(_user(digest, name="Carla Nunes", email="carla@empresa.com")),
            store.insert(_user(digest, name="Diego 100%", email="diego@example.com")),
        ]
        return users

    def test_newest_first(self, store: UserStore, populated: list[User]) -> None:
        listed = store.list_active()
        created = [u.created_at for u in listed]
        assert created == sorted(created, reverse=True)
        assert len(listed) == 4

    def test_window(self, store: UserStore, populated: list[User]) -> None:
        first = store.list_active(limit=3, offset=0)
        rest = store.list_active(limit=3, offset=3)
        assert len(first) == 3
        assert len(rest) == 1
        assert {u.id for u in first} | {u.id for u in rest} == {u.id for u in populated}

    def test_search_matches_name_or_email_case_insensitive(self, store: UserStore, populated: list[User]) -> None:
        assert {u.name for u in store.list_active(search="ANA")} == {"Ana Paula"}
        assert {u.name for u in store.list_active(search="empresa")} == {"Carla Nunes"}
        assert store.count_active(search="example") == 3

    def test_search_wildcards_are_literal(self, store: UserStore, populated: list[User]) -> None:
        assert {u.name for u in store.list_active(search="%")} == {"Diego 100%"}
        assert store.count_active(search="_") == 0

    def test_active_filter(self, store: UserStore, populated: list[User]) -> None:
        assert {u.name for u in store.list_active(active=False)} == {"Bruno Costa"}
        assert store.count_active(active=True) == 3


class TestStats:
    def test_counts(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest, email="a@example.com"))
        store.insert(_user(digest, email="b@example.com", active=False))
        gone = store.insert(_user(digest, email="c@example.com"))
        store.soft_delete(gone.id, deleted_by=gone.id)

        stats = store.stats()
        assert stats == {
            "total_users": 2,
            "active_users": 1,
            "inactive_users": 1,
            "new_users_last_30_days": 2,
            "new_users_last_7_days": 2,
        }

    def test_recent_windows_relative_to_now(self, store: UserStore, digest: str) -> None:
        store.insert(_user(digest))
        later = datetime.now(timezone.utc) + timedelta(days=10)
        stats = store.stats(now=later)
        assert stats["new_users_last_30_days"] == 1
        assert stats["new_users_last_7_days"] == 0

    def test_empty_store(self, store: UserStore) -> None:
        assert store.stats()["total_users"] == 0


def test_ping(store: UserStore) -> None:
    assert store.ping() is True
