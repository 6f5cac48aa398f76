from __future__ import annotations

import logging
from dataclasses import dataclass

from foodbridge.domain.entities.identity import AuthIdentity
from foodbridge.domain.entities.profile import ProfileEntity, Role
from foodbridge.domain.errors import NotFoundError, UniqueViolationError
from foodbridge.domain.services.provisioning_service import ProvisioningService
from foodbridge.infrastructure.database.repositories.profile_repository import ProfileRepository

logger = logging.getLogger(__name__)


@dataclass
class ProvisionProfileUseCase:
    """
    Create the profile for an identity that just signed up with a password.

    The database hook provisions the same row on identity creation, so the
    insert may find it already there. That outcome counts as success.
    """

    profiles: ProfileRepository

    def execute(self, identity: AuthIdentity, role: Role) -> ProfileEntity | None:
        """
        Insert the signup profile row.

        Returns:
            The inserted profile, or None when a row for this identity already existed.

        Raises:
            UniqueViolationError: If another identity's profile holds the same email.
            ValidationError: For other constraint violations.
            TransientQueryError: If the persistence service failed.
        """
        row = ProvisioningService.profile_for_signup(identity, role)
        try:
            return self.profiles.insert(row)
        except UniqueViolationError:
            # Only a row under this identity's own id counts as already provisioned
            if not self._exists(identity.id):
                raise
            logger.info("Profile %s already provisioned, keeping existing row", identity.id)
            return None

    def _exists(self, profile_id: str) -> bool:
        try:
            self.profiles.get(profile_id)
        except NotFoundError:
            return False
        return True
