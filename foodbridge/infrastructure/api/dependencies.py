from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from foodbridge.application.use_cases.session_synchronizer import SessionSynchronizer
from foodbridge.domain.errors import AuthenticationError
from foodbridge.infrastructure.auth.identity_provider import SupabaseIdentityProvider
from foodbridge.infrastructure.database.repositories.profile_repository import ProfileRepository
from foodbridge.infrastructure.database.supabase_client import get_supabase_client

_bearer_scheme = HTTPBearer(auto_error=False)


def get_profile_repo() -> ProfileRepository:
    return ProfileRepository(get_supabase_client())


def get_identity_provider(profiles: ProfileRepository) -> SupabaseIdentityProvider:
    # The hook is only invoked when accounts live in memory; Supabase runs its own trigger.
    return SupabaseIdentityProvider(get_supabase_client(), on_identity_created=profiles.provision_for_identity)


def build_synchronizer() -> SessionSynchronizer:
    profiles = get_profile_repo()
    return SessionSynchronizer(get_identity_provider(profiles), profiles)


def get_synchronizer(request: Request) -> SessionSynchronizer:
    sync = getattr(request.app.state, "session", None)
    if sync is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Session service not started")
    return sync


def get_authorized_session(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    sync: Annotated[SessionSynchronizer, Depends(get_synchronizer)] = None,
) -> SessionSynchronizer:
    """Return the synchronizer once the caller proves they hold its access token."""
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        session = sync.identity.get_session()
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    expected = session.access_token if session else None
    if not expected or not secrets.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")
    return sync
