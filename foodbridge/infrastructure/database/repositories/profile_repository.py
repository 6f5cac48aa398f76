from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

import psycopg2
from postgrest.exceptions import APIError
from psycopg2 import errors as pg_errors
from psycopg2 import sql
from supabase import Client

from foodbridge.domain.entities.identity import AuthIdentity
from foodbridge.domain.entities.profile import Category, Location, ProfileEntity, Role
from foodbridge.domain.errors import (
    NotFoundError,
    TransientQueryError,
    UniqueViolationError,
    ValidationError,
)
from foodbridge.domain.services.provisioning_service import ProvisioningService
from foodbridge.infrastructure.database.postgres_client import adapt_json, get_postgres_client

logger = logging.getLogger(__name__)

TABLE = "profiles"

# Columns a profile update may touch; id, email and timestamps are server owned.
UPDATABLE_COLUMNS = frozenset(
    {
        "full_name",
        "phone",
        "role",
        "organization_name",
        "category",
        "location",
        "profile_picture",
        "verified",
        "profile_complete",
    }
)

# PostgREST / Postgres error codes
NO_ROWS = "PGRST116"
UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"
INVALID_TEXT = "22P02"


class ProfileRepository:
    """Access to the ``profiles`` table.

    Backend is picked from the environment: local Postgres (``USE_LOCAL_DB=1``),
    an in-memory table (``SUPABASE_DISABLED=1`` or no client), or Supabase.
    """

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None
        self._mem: dict[str, ProfileEntity] = {}

    @property
    def in_memory(self) -> bool:
        return not (self.use_local_db and self.pg_client) and (self.disabled or self.client is None)

    def _row_to_entity(self, row: dict) -> ProfileEntity:
        """Convert database row to ProfileEntity."""
        location = row.get("location")
        if isinstance(location, str):
            location = json.loads(location)
        category = row.get("category")
        return ProfileEntity(
            id=str(row["id"]),
            email=row["email"],
            full_name=row.get("full_name"),
            phone=row.get("phone"),
            role=Role(row.get("role") or Role.DONOR.value),
            organization_name=row.get("organization_name"),
            category=Category(category) if category else None,
            location=Location.from_dict(location) if location else None,
            profile_picture=row.get("profile_picture"),
            verified=bool(row.get("verified", False)),
            profile_complete=bool(row.get("profile_complete", False)),
            created_at=_parse_ts(row.get("created_at")),
            updated_at=_parse_ts(row.get("updated_at")),
        )

    def _map_row(self, row: dict, action: str) -> ProfileEntity:
        try:
            return self._row_to_entity(row)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise TransientQueryError(f"DB {action} profile returned a malformed row: {exc}") from exc

    def _entity_to_row(self, profile: ProfileEntity) -> dict[str, Any]:
        return {
            "id": profile.id,
            "email": profile.email,
            "full_name": profile.full_name,
            "phone": profile.phone,
            "role": profile.role.value,
            "organization_name": profile.organization_name,
            "category": profile.category.value if profile.category else None,
            "location": profile.location.to_dict() if profile.location else None,
            "profile_picture": profile.profile_picture,
            "verified": profile.verified,
            "profile_complete": profile.profile_complete,
        }

    def get(self, profile_id: str) -> ProfileEntity:
        """Return the profile for ``profile_id``.

        Raises:
            NotFoundError: No row exists for this id (e.g. provisioning still pending).
            TransientQueryError: The query itself failed.
        """
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.execute_one(f"SELECT * FROM {TABLE} WHERE id = %s", (profile_id,))
            except psycopg2.Error as exc:
                raise _from_pg_error(exc, "fetch") from exc
            if row is None:
                raise NotFoundError(f"Profile {profile_id} not found")
            return self._map_row(row, "fetch")

        # In-memory mode
        if self.in_memory:
            profile = self._mem.get(profile_id)
            if profile is None:
                raise NotFoundError(f"Profile {profile_id} not found")
            return profile

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(TABLE).select("*").eq("id", profile_id).single().execute()
        except APIError as exc:  # pragma: no cover - network
            raise _from_api_error(exc, "fetch") from exc
        except Exception as exc:  # pragma: no cover - network
            raise TransientQueryError(f"DB fetch profile failed: {exc}") from exc
        return self._map_row(res.data, "fetch")  # pragma: no cover - network

    def insert(self, profile: ProfileEntity) -> ProfileEntity:
        """Insert a new profile row.

        Raises:
            UniqueViolationError: A row with this id or email already exists.
        """
        row = self._entity_to_row(profile)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            columns = list(row)
            query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
                sql.Identifier(TABLE),
                sql.SQL(", ").join(map(sql.Identifier, columns)),
                sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            )
            try:
                created = self.pg_client.execute_one(query, tuple(adapt_json(row[c]) for c in columns))
            except psycopg2.Error as exc:
                raise _from_pg_error(exc, "insert") from exc
            return self._map_row(created, "insert")

        # In-memory mode
        if self.in_memory:
            if profile.id in self._mem:
                raise UniqueViolationError(f"Profile {profile.id} already exists")
            if any(p.email == profile.email for p in self._mem.values()):
                raise UniqueViolationError(f"Email {profile.email} is already registered")
            now = datetime.now(UTC)
            entity = replace(profile, created_at=now, updated_at=now)
            self._mem[profile.id] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(TABLE).insert(row).execute()
        except APIError as exc:  # pragma: no cover - network
            raise _from_api_error(exc, "insert") from exc
        except Exception as exc:  # pragma: no cover - network
            raise TransientQueryError(f"DB insert profile failed: {exc}") from exc
        return self._map_row(res.data[0], "insert")  # pragma: no cover - network

    def update(self, profile_id: str, changes: dict[str, Any]) -> ProfileEntity | None:
        """Apply ``changes`` to the row with ``profile_id``; None if no row matched."""
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValidationError(f"Cannot update profile columns: {', '.join(sorted(unknown))}")

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            columns = list(changes)
            query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
                sql.Identifier(TABLE),
                sql.SQL(", ").join(
                    sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder()) for c in columns
                ),
            )
            params = tuple(adapt_json(changes[c]) for c in columns) + (profile_id,)
            try:
                row = self.pg_client.execute_one(query, params)
            except psycopg2.Error as exc:
                raise _from_pg_error(exc, "update") from exc
            return self._map_row(row, "update") if row else None

        # In-memory mode
        if self.in_memory:
            current = self._mem.get(profile_id)
            if current is None:
                return None
            row = self._entity_to_row(current)
            row.update(changes)
            try:
                updated = self._row_to_entity(row)
            except ValueError as exc:
                # check constraint on role / category
                raise ValidationError(str(exc)) from exc
            # updated_at is refreshed by a trigger in the real schema
            updated = replace(updated, created_at=current.created_at, updated_at=datetime.now(UTC))
            self._mem[profile_id] = updated
            return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table(TABLE).update(changes).eq("id", profile_id).execute()
        except APIError as exc:  # pragma: no cover - network
            raise _from_api_error(exc, "update") from exc
        except Exception as exc:  # pragma: no cover - network
            raise TransientQueryError(f"DB update profile failed: {exc}") from exc
        return self._map_row(res.data[0], "update") if res.data else None  # pragma: no cover - network

    def provision_for_identity(self, identity: AuthIdentity) -> ProfileEntity:
        """Create the profile for a newly created identity.

        Mirrors the ``handle_new_user`` database trigger for backends that
        have no ``auth.users`` table to hang it on.
        """
        profile = self.insert(ProvisioningService.profile_from_identity(identity))
        logger.info("Provisioned profile %s (role=%s)", profile.id, profile.role.value)
        return profile


def _parse_ts(value: Any) -> datetime | None:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _classify(code: str | None, message: str, action: str) -> Exception:
    if code == NO_ROWS:
        return NotFoundError(message)
    if code == UNIQUE_VIOLATION:
        return UniqueViolationError(message)
    if code in (CHECK_VIOLATION, INVALID_TEXT):
        return ValidationError(message)
    return TransientQueryError(f"DB {action} profile failed: {message}")


def _from_api_error(exc: APIError, action: str) -> Exception:
    return _classify(exc.code, exc.message or str(exc), action)


def _from_pg_error(exc: psycopg2.Error, action: str) -> Exception:
    if isinstance(exc, pg_errors.UniqueViolation):
        return UniqueViolationError(str(exc).strip())
    if isinstance(exc, (pg_errors.CheckViolation, pg_errors.InvalidTextRepresentation)):
        return ValidationError(str(exc).strip())
    return TransientQueryError(f"PostgreSQL {action} profile failed: {exc}")
