from __future__ import annotations

from typing import Any

from foodbridge.domain.entities.identity import AuthIdentity
from foodbridge.domain.entities.profile import SELF_ASSIGNABLE_ROLES, ProfileEntity, Role
from foodbridge.domain.entities.user import email_local_part
from foodbridge.domain.errors import ValidationError


class ProvisioningService:
    """Rules for turning a new auth identity into a ``profiles`` row.

    Two paths provision profiles:
    - the database hook that runs on every new identity (``profile_from_identity``)
    - the explicit insert done right after password signup (``profile_for_signup``)

    Both must produce rows the other path would accept as "already there".
    """

    @staticmethod
    def derive_full_name(identity: AuthIdentity) -> str:
        return identity.user_metadata.get("full_name") or email_local_part(identity.email)

    # Metadata is written by the signing-up client, so its role is untrusted.
    @staticmethod
    def derive_role(metadata: dict[str, Any]) -> Role:
        raw = metadata.get("role")
        try:
            role = Role(raw)
        except ValueError:
            return Role.DONOR
        return role if role in SELF_ASSIGNABLE_ROLES else Role.DONOR

    @staticmethod
    def validate_signup_role(role: str | Role) -> Role:
        try:
            parsed = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}") from None
        if parsed not in SELF_ASSIGNABLE_ROLES:
            raise ValidationError("Only donor or receiver accounts can be registered")
        return parsed

    # Server-side hook: one profile per new identity.
    @staticmethod
    def profile_from_identity(identity: AuthIdentity) -> ProfileEntity:
        return ProfileEntity(
            id=identity.id,
            email=identity.email,
            full_name=ProvisioningService.derive_full_name(identity),
            profile_picture=identity.user_metadata.get("avatar_url"),
            role=ProvisioningService.derive_role(identity.user_metadata),
            verified=identity.email_confirmed,
            profile_complete=False,
        )

    @staticmethod
    def profile_for_signup(identity: AuthIdentity, role: Role) -> ProfileEntity:
        return ProfileEntity(
            id=identity.id,
            email=identity.email,
            full_name=ProvisioningService.derive_full_name(identity),
            profile_picture=identity.user_metadata.get("avatar_url"),
            role=role,
            verified=False,
            profile_complete=False,
        )
