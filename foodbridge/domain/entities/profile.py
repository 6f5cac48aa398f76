from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    DONOR = "donor"
    RECEIVER = "receiver"
    ADMIN = "admin"


# Roles a user may pick for themselves at signup.
SELF_ASSIGNABLE_ROLES = frozenset({Role.DONOR, Role.RECEIVER})


class Category(str, Enum):
    NGO = "ngo"
    ORPHANAGE = "orphanage"
    OLD_AGE_HOME = "old-age-home"
    SHELTER = "shelter"
    VOLUNTEER_GROUP = "volunteer-group"
    COMMUNITY_KITCHEN = "community-kitchen"


@dataclass(frozen=True)
class Location:
    address: str
    lat: float
    lng: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Location:
        coords = data.get("coordinates") or {}
        if coords.get("lat") is None or coords.get("lng") is None:
            raise ValueError(f"Location coordinates need both lat and lng, got {coords!r}")
        return cls(
            address=data.get("address", ""),
            lat=float(coords["lat"]),
            lng=float(coords["lng"]),
        )

    def to_dict(self) -> dict[str, Any]:
        # jsonb shape stored in profiles.location
        return {"address": self.address, "coordinates": {"lat": self.lat, "lng": self.lng}}


@dataclass(frozen=True)
class ProfileEntity:
    id: str  # same as the auth identity id
    email: str
    full_name: str | None = None
    phone: str | None = None
    role: Role = Role.DONOR
    organization_name: str | None = None
    category: Category | None = None
    location: Location | None = None
    profile_picture: str | None = None
    verified: bool = False
    profile_complete: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
