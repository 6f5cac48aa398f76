from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from foodbridge.application.dtos.session_dto import (
    LoginRequest,
    LogoutResponse,
    OAuthStartResponse,
    ProfileUpdate,
    RegisterRequest,
    SessionStateResponse,
    SessionTokenResponse,
    UserResponse,
)
from foodbridge.application.use_cases.session_synchronizer import SessionSynchronizer
from foodbridge.domain.errors import AuthenticationError, TransientQueryError, ValidationError
from foodbridge.infrastructure.api.dependencies import get_authorized_session, get_synchronizer

router = APIRouter(
    prefix="/session",
    tags=["Session"],
    responses={
        422: {"description": "Validation Error - Invalid request format"},
        503: {"description": "Service Unavailable - Persistence or identity service failed"},
    },
)


def _state(sync: SessionSynchronizer, response: type[SessionStateResponse] = SessionStateResponse, **extra):
    user = sync.current_user
    return response(
        user=UserResponse.from_user(user) if user else None,
        loading=sync.loading,
        error=sync.last_error,
        **extra,
    )


def _token_state(sync: SessionSynchronizer) -> SessionTokenResponse:
    # the token is what the caller presents as a bearer on the guarded routes
    try:
        session = sync.identity.get_session()
    except AuthenticationError as exc:
        _raise_http(exc)
    return _state(sync, SessionTokenResponse, access_token=session.access_token if session else None)


def _raise_http(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthenticationError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get(
    "",
    response_model=SessionStateResponse,
    summary="Current Session",
    description="""
    Return the signed-in user (or null), whether a session operation is in
    progress, and the last user-facing error message.
    """,
    responses={401: {"description": "Unauthorized - Missing or invalid bearer token"}},
)
def get_session(sync: SessionSynchronizer = Depends(get_authorized_session)):
    """Get the current session state."""
    return _state(sync)


@router.post(
    "/login",
    response_model=SessionTokenResponse,
    summary="Password Login",
    description="""
    Sign in with email and password and load the user's profile.

    If the profile has not been provisioned yet the session is still
    established and `user` stays null until it appears.

    The returned `access_token` must be sent as `Authorization: Bearer <token>`
    on the session, profile and logout routes.
    """,
    responses={401: {"description": "Unauthorized - Invalid login credentials"}},
)
def login(body: LoginRequest, sync: SessionSynchronizer = Depends(get_synchronizer)):
    """Sign in with a password."""
    try:
        sync.login(body.email, body.password)
    except (AuthenticationError, ValidationError, TransientQueryError) as exc:
        _raise_http(exc)
    return _token_state(sync)


@router.post(
    "/google",
    response_model=OAuthStartResponse,
    summary="Start Google Login",
    description="""
    Begin the Google OAuth redirect flow. The client should navigate to the
    returned URL; the profile is synced when the provider reports the new
    session.
    """,
    responses={502: {"description": "Bad Gateway - OAuth flow could not be started"}},
)
def login_with_google(sync: SessionSynchronizer = Depends(get_synchronizer)):
    """Start the Google OAuth flow."""
    try:
        url = sync.login_with_google()
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"url": url}


@router.post(
    "/register",
    response_model=SessionTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="""
    Create a donor or receiver account and provision its profile.

    **Request Requirements:**
    - `role` is `donor` or `receiver`; admin accounts cannot be self-registered
    - The returned `access_token` authorizes the other session routes
    """,
    responses={
        400: {"description": "Bad Request - Constraint violation such as a duplicate email"},
        401: {"description": "Unauthorized - Sign-up rejected by the identity provider"},
    },
)
def register(body: RegisterRequest, sync: SessionSynchronizer = Depends(get_synchronizer)):
    """Register a new account."""
    try:
        sync.register(body.email, body.password, body.role)
    except (AuthenticationError, ValidationError, TransientQueryError) as exc:
        _raise_http(exc)
    return _token_state(sync)


@router.patch(
    "/profile",
    response_model=SessionStateResponse,
    summary="Update Profile",
    description="""
    Update the signed-in user's profile. Only the fields present in the body
    are written, and any update marks the profile as complete.
    """,
    responses={
        400: {"description": "Bad Request - Constraint violation"},
        401: {"description": "Unauthorized - Missing or invalid bearer token, or no user is signed in"},
    },
)
def update_profile(body: ProfileUpdate, sync: SessionSynchronizer = Depends(get_authorized_session)):
    """Update the current user's profile."""
    if sync.current_user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    try:
        sync.update_profile(body)
    except (ValidationError, TransientQueryError) as exc:
        _raise_http(exc)
    return _state(sync)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="Logout",
    description="Sign out. Always succeeds; provider failures are only logged.",
    responses={401: {"description": "Unauthorized - Missing or invalid bearer token"}},
)
def logout(sync: SessionSynchronizer = Depends(get_authorized_session)):
    """Sign out of the current session."""
    sync.logout()
    return {"ok": True}
