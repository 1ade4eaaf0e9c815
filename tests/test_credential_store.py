"""
tests/test_credential_store.py -- Unit tests for auth/store.py.

Covers:
- initialize() is idempotent and creates the Users table
- insert_user() returns increasing ids; get_user_by_username() is exact and case-sensitive
- SQL metacharacters in values are bound, never executed (SQL injection, CWE-89)
- UNIQUE username -> DuplicateUsername; driver failures -> StorageUnavailable
- empty hash / role are refused before reaching the database
- file-backed stores survive reopening
"""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, text

from auth.errors import DuplicateUsername, StorageUnavailable
from auth.sanitizer import sanitize_username
from auth.store import CredentialStore


def _insert(store: CredentialStore, hasher, username: str, role: str = "user") -> int:
    return store.insert_user(username, f"{username or 'x'}@example.com", hasher.hash("pw"), role)


class TestSchema:
    def test_users_table_created_on_construction(self, store):
        assert inspect(store.engine).has_table("Users")

    def test_initialize_is_idempotent(self, store, hasher):
        _insert(store, hasher, "alice")
        store.initialize()
        store.initialize()
        assert store.count_users() == 1

    def test_columns_match_contract(self, store):
        columns = {c["name"]: c for c in inspect(store.engine).get_columns("Users")}
        assert set(columns) == {"Id", "Username", "Email", "PasswordHash", "Role"}
        for name in ("Username", "Email", "PasswordHash", "Role"):
            assert columns[name]["nullable"] is False

    def test_ddl_uses_autoincrement(self, store):
        with store.engine.connect() as conn:
            ddl = conn.execute(text("SELECT sql FROM sqlite_master WHERE name = 'Users'")).scalar()
        assert "AUTOINCREMENT" in ddl.upper()


class TestInsertAndLookup:
    def test_insert_returns_positive_increasing_ids(self, store, hasher):
        first = _insert(store, hasher, "alice")
        second = _insert(store, hasher, "bob")
        assert first >= 1
        assert second > first

    def test_get_by_username_returns_full_record(self, store, hasher):
        stored_hash = hasher.hash("P@ssw0rd!")
        uid = store.insert_user("alice", "alice@example.com", stored_hash, "admin")
        user = store.get_user_by_username("alice")
        assert user is not None
        assert user.id == uid
        assert user.username == "alice"
        assert user.email == "alice@example.com"
        assert user.password_hash == stored_hash
        assert user.role == "admin"

    def test_lookup_is_case_sensitive(self, store, hasher):
        _insert(store, hasher, "Alice")
        assert store.get_user_by_username("alice") is None
        assert store.get_user_by_username("Alice") is not None

    def test_unknown_username_returns_none(self, store):
        assert store.get_user_by_username("ghost") is None

    def test_get_by_id(self, store, hasher):
        uid = _insert(store, hasher, "carol")
        assert store.get_user_by_id(uid).username == "carol"
        assert store.get_user_by_id(uid + 100) is None

    def test_count_users(self, store, hasher):
        assert store.count_users() == 0
        _insert(store, hasher, "a1")
        _insert(store, hasher, "a2")
        assert store.count_users() == 2

    def test_any_non_empty_role_is_accepted(self, store, hasher):
        _insert(store, hasher, "auditor", role="auditor")
        assert store.get_user_by_username("auditor").role == "auditor"

    def test_repr_hides_password_hash(self, store, hasher):
        _insert(store, hasher, "dave")
        user = store.get_user_by_username("dave")
        assert user.password_hash not in repr(user)


class TestSqlInjection:
    def test_sanitized_injection_payload_is_stored_as_data(self, store, hasher):
        safe_name = sanitize_username("attacker'; DROP TABLE Users; --")
        assert safe_name

        store.insert_user(safe_name, "attacker@example.com", hasher.hash("pw"), "user")

        assert store.count_users() == 1
        assert inspect(store.engine).has_table("Users")
        fetched = store.get_user_by_username(safe_name)
        assert fetched is not None
        assert fetched.username == safe_name

    def test_raw_injection_payload_is_bound_not_executed(self, store, hasher):
        """Even unsanitized metacharacters reach the table as a literal value."""
        raw = "attacker'; DROP TABLE Users; --"
        store.insert_user(raw, "attacker@example.com", hasher.hash("pw"), "user")
        _insert(store, hasher, "bystander")

        assert store.count_users() == 2
        assert store.get_user_by_username(raw).username == raw
        assert store.get_user_by_username("' OR '1'='1") is None


class TestErrors:
    def test_duplicate_username_raises(self, store, hasher):
        _insert(store, hasher, "alice")
        with pytest.raises(DuplicateUsername) as exc_info:
            _insert(store, hasher, "alice")
        assert exc_info.value.username == "alice"
        assert store.count_users() == 1

    def test_duplicate_check_is_case_sensitive(self, store, hasher):
        _insert(store, hasher, "alice")
        _insert(store, hasher, "ALICE")
        assert store.count_users() == 2

    def test_empty_hash_refused(self, store):
        with pytest.raises(ValueError):
            store.insert_user("alice", "alice@example.com", "", "user")
        assert store.count_users() == 0

    def test_empty_role_refused(self, store, hasher):
        with pytest.raises(ValueError):
            store.insert_user("alice", "alice@example.com", hasher.hash("pw"), "")

    def test_missing_table_raises_storage_unavailable(self, store, hasher):
        with store.engine.begin() as conn:
            conn.execute(text("DROP TABLE Users"))
        with pytest.raises(StorageUnavailable):
            _insert(store, hasher, "alice")
        with pytest.raises(StorageUnavailable):
            store.get_user_by_username("alice")
        with pytest.raises(StorageUnavailable):
            store.count_users()

    def test_unopenable_database_raises_storage_unavailable(self, tmp_path):
        bad_url = f"sqlite:///{tmp_path / 'missing-dir' / 'auth.db'}"
        with pytest.raises(StorageUnavailable):
            CredentialStore(bad_url)

    def test_check_connection(self, store):
        assert store.check_connection() is True


class TestFileBackedStore:
    def test_records_survive_reopen(self, tmp_path, hasher):
        url = f"sqlite:///{tmp_path / 'auth.db'}"
        first = CredentialStore(url)
        uid = _insert(first, hasher, "alice")
        first.close()

        second = CredentialStore(url)
        try:
            assert second.get_user_by_username("alice").id == uid
            assert second.count_users() == 1
        finally:
            second.close()
