"""
Tests for error classification and the local PostgreSQL backend of the
profile repository, with the database client mocked out.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import psycopg2
import pytest
from postgrest.exceptions import APIError
from psycopg2 import errors as pg_errors

from foodbridge.domain.entities.profile import ProfileEntity, Role
from foodbridge.domain.errors import (
    NotFoundError,
    TransientQueryError,
    UniqueViolationError,
    ValidationError,
)
from foodbridge.infrastructure.database.repositories.profile_repository import (
    ProfileRepository,
    _classify,
    _from_api_error,
    _from_pg_error,
)

ROW = {
    "id": "u1",
    "email": "a@x.com",
    "full_name": "Asha",
    "role": "receiver",
    "category": "shelter",
    "location": '{"address": "12 MG Road", "coordinates": {"lat": 12.97, "lng": 77.59}}',
    "verified": True,
    "profile_complete": False,
    "created_at": "2025-06-30T10:24:31+00:00",
    "updated_at": "2025-06-30T10:24:31+00:00",
}


@pytest.fixture
def pg_repo():
    repo = ProfileRepository(None)
    repo.use_local_db = True
    repo.pg_client = MagicMock()
    return repo


def _api_error(code, message="boom"):
    return APIError({"code": code, "message": message, "details": None, "hint": None})


class TestClassify:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("PGRST116", NotFoundError),
            ("23505", UniqueViolationError),
            ("23514", ValidationError),
            ("22P02", ValidationError),
            ("57014", TransientQueryError),
            (None, TransientQueryError),
        ],
    )
    def test_codes(self, code, expected):
        assert type(_classify(code, "msg", "fetch")) is expected

    def test_unknown_code_names_action(self):
        assert str(_classify("08006", "connection lost", "update")) == "DB update profile failed: connection lost"

    def test_api_error_zero_rows_is_not_found(self):
        raw = _api_error("PGRST116", "JSON object requested, multiple (or no) rows returned")
        err = _from_api_error(raw, "fetch")
        assert isinstance(err, NotFoundError)
        assert "no) rows" in str(err)

    def test_api_error_duplicate_is_unique_violation(self):
        raw = _api_error("23505", 'duplicate key value violates unique constraint "profiles_pkey"')
        err = _from_api_error(raw, "insert")
        assert isinstance(err, UniqueViolationError)
        assert isinstance(err, ValidationError)

    def test_api_error_check_violation(self):
        assert type(_from_api_error(_api_error("23514"), "update")) is ValidationError

    def test_pg_unique_violation(self):
        err = _from_pg_error(pg_errors.UniqueViolation("duplicate key value\n"), "insert")
        assert isinstance(err, UniqueViolationError)
        assert str(err) == "duplicate key value"

    def test_pg_check_violation(self):
        assert type(_from_pg_error(pg_errors.CheckViolation("profiles_role_check"), "update")) is ValidationError

    def test_pg_invalid_text(self):
        err = _from_pg_error(pg_errors.InvalidTextRepresentation("invalid input syntax"), "fetch")
        assert type(err) is ValidationError

    def test_pg_other_error_is_transient(self):
        err = _from_pg_error(psycopg2.OperationalError("server closed the connection"), "fetch")
        assert isinstance(err, TransientQueryError)
        assert "PostgreSQL fetch profile failed" in str(err)


class TestLocalPostgres:
    def test_get_maps_row(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = ROW
        profile = pg_repo.get("u1")
        assert profile.role is Role.RECEIVER
        assert profile.location.lat == 12.97
        assert profile.created_at.year == 2025
        pg_repo.pg_client.execute_one.assert_called_once_with("SELECT * FROM profiles WHERE id = %s", ("u1",))

    def test_get_missing_row_raises_not_found(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = None
        with pytest.raises(NotFoundError):
            pg_repo.get("nobody")

    def test_get_connection_failure_is_transient(self, pg_repo):
        pg_repo.pg_client.execute_one.side_effect = psycopg2.OperationalError("timeout")
        with pytest.raises(TransientQueryError):
            pg_repo.get("u1")

    def test_get_malformed_row_is_transient(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = {**ROW, "role": "superuser"}
        with pytest.raises(TransientQueryError, match="malformed row"):
            pg_repo.get("u1")

    def test_get_row_without_coordinates_is_transient(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = {**ROW, "location": {"address": "12 MG Road"}}
        with pytest.raises(TransientQueryError):
            pg_repo.get("u1")

    def test_insert_duplicate_raises_unique_violation(self, pg_repo):
        pg_repo.pg_client.execute_one.side_effect = pg_errors.UniqueViolation("duplicate key value")
        with pytest.raises(UniqueViolationError):
            pg_repo.insert(ProfileEntity(id="u1", email="a@x.com"))

    def test_insert_returns_stored_row(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = ROW
        created = pg_repo.insert(ProfileEntity(id="u1", email="a@x.com", role=Role.RECEIVER))
        assert created.full_name == "Asha"
        params = pg_repo.pg_client.execute_one.call_args[0][1]
        assert params[0] == "u1"
        assert "receiver" in params

    def test_update_passes_id_last(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = {**ROW, "phone": "456"}
        updated = pg_repo.update("u1", {"phone": "456"})
        assert updated.phone == "456"
        assert pg_repo.pg_client.execute_one.call_args[0][1] == ("456", "u1")

    def test_update_missing_row_returns_none(self, pg_repo):
        pg_repo.pg_client.execute_one.return_value = None
        assert pg_repo.update("nobody", {"phone": "1"}) is None

    def test_update_check_violation(self, pg_repo):
        pg_repo.pg_client.execute_one.side_effect = pg_errors.CheckViolation("profiles_category_check")
        with pytest.raises(ValidationError):
            pg_repo.update("u1", {"category": "shelter"})
