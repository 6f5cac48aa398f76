from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from foodbridge.domain.entities.profile import Category, Location, ProfileEntity, Role


def email_local_part(email: str) -> str:
    return email.split("@")[0]


@dataclass(frozen=True)
class User:
    """In-memory view of the signed-in user's profile."""

    id: str
    name: str
    email: str
    role: Role
    verified: bool
    profile_complete: bool
    profile_picture: str | None = None
    phone: str | None = None
    location: Location | None = None
    organization_name: str | None = None
    category: Category | None = None
    created_at: datetime | None = None

    @classmethod
    def from_profile(cls, profile: ProfileEntity) -> User:
        return cls(
            id=profile.id,
            name=profile.full_name or email_local_part(profile.email),
            email=profile.email,
            role=profile.role,
            verified=profile.verified,
            profile_complete=profile.profile_complete,
            profile_picture=profile.profile_picture,
            phone=profile.phone,
            location=profile.location,
            organization_name=profile.organization_name,
            category=profile.category,
            created_at=profile.created_at,
        )
