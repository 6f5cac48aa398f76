from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from foodbridge.application.dtos.session_dto import ProfileUpdate
from foodbridge.application.use_cases.provision_profile import ProvisionProfileUseCase
from foodbridge.domain.entities.identity import SessionEvent, SessionEventType
from foodbridge.domain.entities.profile import Role
from foodbridge.domain.entities.user import User
from foodbridge.domain.errors import FoodBridgeError, NotFoundError, ValidationError
from foodbridge.domain.services.provisioning_service import ProvisioningService
from foodbridge.infrastructure.auth.identity_provider import SessionSubscription, SupabaseIdentityProvider
from foodbridge.infrastructure.database.repositories.profile_repository import ProfileRepository

logger = logging.getLogger(__name__)

PROFILE_LOAD_FAILED = "Failed to load user profile"
LOGIN_FAILED = "Login failed. Please try again."
GOOGLE_LOGIN_FAILED = "Google login failed. Please try again."
REGISTRATION_FAILED = "Registration failed. Please try again."
UPDATE_FAILED = "Profile update failed. Please try again."

OAUTH_QUERY_PARAMS = {"access_type": "offline", "prompt": "consent"}


class SessionSynchronizer:
    """Keeps an in-memory :class:`User` in step with the identity provider's session.

    One instance per process, created and torn down by its owner::

        with SessionSynchronizer(identity, profiles) as sync:
            sync.login(email, password)

    ``start()`` checks for an existing session and subscribes to session
    events; ``close()`` releases the subscription. All calls run on the
    caller's thread. Overlapping profile fetches are last-write-wins.
    """

    def __init__(
        self,
        identity: SupabaseIdentityProvider,
        profiles: ProfileRepository,
        *,
        site_url: str | None = None,
    ) -> None:
        self.identity = identity
        self.profiles = profiles
        self.site_url = (site_url or os.getenv("SITE_URL", "http://localhost:5173")).rstrip("/")
        self._provision = ProvisionProfileUseCase(profiles)
        self._subscription: SessionSubscription | None = None
        self._started = False

        self.current_user: User | None = None
        self.loading = True
        self.last_error: str | None = None

    # Lifecycle

    def start(self) -> None:
        """Subscribe to session events and restore any existing session. Runs once."""
        if self._started:
            return
        self._started = True
        self._subscription = self.identity.subscribe(self._on_session_event)
        self.bootstrap()

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def __enter__(self) -> SessionSynchronizer:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def subscription(self) -> SessionSubscription | None:
        return self._subscription

    def bootstrap(self) -> None:
        try:
            session = self.identity.get_session()
            if session is not None:
                self.fetch_profile(session.identity.id)
        except Exception:
            logger.exception("Session check failed")
        finally:
            self.loading = False

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.type is SessionEventType.SIGNED_IN and event.session is not None:
            try:
                self.fetch_profile(event.session.identity.id)
            finally:
                # resolves the wait started by login_with_google
                self.loading = False
        elif event.type is SessionEventType.SIGNED_OUT:
            self.current_user = None

    # Profile sync

    def fetch_profile(self, identity_id: str) -> User | None:
        """Load the profile for ``identity_id`` into ``current_user``.

        A missing row leaves the current view untouched: the provisioning
        hook may not have run yet. Query failures are recorded in
        ``last_error`` and logged, never raised.
        """
        try:
            profile = self.profiles.get(identity_id)
        except NotFoundError:
            logger.debug("No profile yet for %s", identity_id)
            return None
        except FoodBridgeError:
            logger.exception("Error fetching user profile %s", identity_id)
            self.last_error = PROFILE_LOAD_FAILED
            return None
        self.current_user = User.from_profile(profile)
        return self.current_user

    # Identity operations

    def login(self, email: str, password: str) -> User | None:
        self.loading = True
        self.last_error = None
        try:
            session = self.identity.sign_in_with_password(email, password)
            return self.fetch_profile(session.identity.id)
        except FoodBridgeError as exc:
            self.last_error = str(exc) or LOGIN_FAILED
            raise
        finally:
            self.loading = False

    def login_with_google(self) -> str:
        """Start the Google OAuth redirect and return the URL to send the browser to.

        The profile is synced later by the SIGNED_IN event, which also
        clears ``loading``.
        """
        self.loading = True
        self.last_error = None
        try:
            return self.identity.sign_in_with_oauth(
                "google",
                redirect_to=f"{self.site_url}/dashboard",
                query_params=dict(OAUTH_QUERY_PARAMS),
            )
        except FoodBridgeError as exc:
            self.last_error = str(exc) or GOOGLE_LOGIN_FAILED
            self.loading = False
            raise

    def register(self, email: str, password: str, role: str | Role) -> User | None:
        self.loading = True
        self.last_error = None
        try:
            requested = ProvisioningService.validate_signup_role(role)
            identity = self.identity.sign_up(email, password, {"role": requested.value})
            if identity is None:
                return None
            self._provision.execute(identity, requested)
            return self.fetch_profile(identity.id)
        except FoodBridgeError as exc:
            self.last_error = str(exc) or REGISTRATION_FAILED
            raise
        finally:
            self.loading = False

    def update_profile(self, changes: ProfileUpdate | dict[str, Any]) -> User | None:
        """Write the supplied fields and mark the profile complete.

        Any update, however partial, sets ``profile_complete``. Does nothing
        when no user is signed in.
        """
        if self.current_user is None:
            return None
        user_id = self.current_user.id
        self.loading = True
        try:
            if not isinstance(changes, ProfileUpdate):
                try:
                    changes = ProfileUpdate.model_validate(changes)
                except PydanticValidationError as exc:
                    raise ValidationError(str(exc)) from exc
            columns = changes.to_columns()
            columns["profile_complete"] = True
            self.profiles.update(user_id, columns)
            return self.fetch_profile(user_id)
        except FoodBridgeError as exc:
            self.last_error = str(exc) or UPDATE_FAILED
            raise
        finally:
            self.loading = False

    def logout(self) -> None:
        # Cleared first so a failed sign-out never leaves a stale signed-in view
        self.current_user = None
        try:
            self.identity.sign_out()
        except Exception:
            logger.exception("Logout failed")
