from __future__ import annotations

import logging
import os
import secrets
import uuid
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

from supabase import Client

from foodbridge.domain.entities.identity import AuthIdentity, Session, SessionEvent, SessionEventType
from foodbridge.domain.errors import AuthenticationError

logger = logging.getLogger(__name__)

SessionEventHandler = Callable[[SessionEvent], None]
IdentityCreatedHook = Callable[[AuthIdentity], Any]

MIN_PASSWORD_LENGTH = 6


class SessionSubscription:
    """Handle for a session-event subscription.

    Translates the provider's ``(event, session)`` callbacks into typed
    :class:`SessionEvent` objects, keeps the most recent ones in order and
    forwards each to ``handler``. Nothing is delivered after :meth:`close`.
    """

    def __init__(self, handler: SessionEventHandler, history: int = 100) -> None:
        self._handler = handler
        self._events: deque[SessionEvent] = deque(maxlen=history)
        self._unsubscribe: Callable[[], Any] | None = None
        self.closed = False

    def attach(self, unsubscribe: Callable[[], Any]) -> None:
        self._unsubscribe = unsubscribe

    def dispatch(self, raw_event: Any, raw_session: Any) -> None:
        if self.closed:
            return
        event_type = SessionEventType.parse(raw_event)
        if event_type is None:
            logger.debug("Ignoring session event %s", raw_event)
            return
        event = SessionEvent(type=event_type, session=to_session(raw_session))
        self._events.append(event)
        self._handler(event)

    @property
    def events(self) -> tuple[SessionEvent, ...]:
        return tuple(self._events)

    def __iter__(self) -> Iterator[SessionEvent]:
        return iter(self.events)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> SessionSubscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass
class _LocalAccount:
    identity: AuthIdentity
    password: str | None


class SupabaseIdentityProvider:
    """Supabase Auth behind the operations the session layer needs.

    When SUPABASE_DISABLED=1 (or no client is configured) accounts, sessions
    and events live in memory, and ``on_identity_created`` plays the part of
    the database trigger that provisions a profile for every new identity.
    """

    def __init__(
        self,
        client: Client | None,
        on_identity_created: IdentityCreatedHook | None = None,
    ) -> None:
        self._client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1" or client is None
        self._on_identity_created = on_identity_created
        self._accounts: dict[str, _LocalAccount] = {}
        self._session: Session | None = None
        self._subscriptions: list[SessionSubscription] = []

    def get_session(self) -> Session | None:
        if self.disabled:
            return self._session
        try:  # pragma: no cover - network
            return to_session(self._client.auth.get_session())
        except Exception as exc:  # pragma: no cover - network
            raise AuthenticationError(_message(exc, "Session check failed")) from exc

    def sign_in_with_password(self, email: str, password: str) -> Session:
        if self.disabled:
            account = self._accounts.get(email.lower())
            if account is None or account.password != password:
                raise AuthenticationError("Invalid login credentials")
            return self._start_session(account.identity)
        try:  # pragma: no cover - network
            res = self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:  # pragma: no cover - network
            raise AuthenticationError(_message(exc, "Invalid login credentials")) from exc
        session = to_session(res.session)  # pragma: no cover - network
        if session is None:  # pragma: no cover - network
            raise AuthenticationError("Sign-in did not return a session")
        return session  # pragma: no cover - network

    def sign_in_with_oauth(
        self,
        provider: str,
        redirect_to: str,
        query_params: dict[str, str] | None = None,
    ) -> str:
        """Start a redirect-based OAuth flow and return the authorization URL."""
        if self.disabled:
            params = {"provider": provider, "redirect_to": redirect_to, **(query_params or {})}
            base = os.getenv("SUPABASE_URL", "http://localhost:54321")
            return f"{base}/auth/v1/authorize?{urlencode(params)}"
        try:  # pragma: no cover - network
            res = self._client.auth.sign_in_with_oauth(
                {
                    "provider": provider,
                    "options": {"redirect_to": redirect_to, "query_params": query_params or {}},
                }
            )
        except Exception as exc:  # pragma: no cover - network
            raise AuthenticationError(_message(exc, "OAuth sign-in failed")) from exc
        return res.url  # pragma: no cover - network

    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthIdentity | None:
        """Create an identity. Returns None when the provider hands back no user."""
        if self.disabled:
            if email.lower() in self._accounts:
                raise AuthenticationError("User already registered")
            if len(password) < MIN_PASSWORD_LENGTH:
                raise AuthenticationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
            identity = AuthIdentity(id=str(uuid.uuid4()), email=email, user_metadata=dict(metadata or {}))
            self._create_account(identity, password)
            self._start_session(identity)
            return identity
        try:  # pragma: no cover - network
            res = self._client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata or {}}}
            )
        except Exception as exc:  # pragma: no cover - network
            raise AuthenticationError(_message(exc, "Sign-up failed")) from exc
        return to_identity(res.user) if res.user else None  # pragma: no cover - network

    def sign_out(self) -> None:
        if self.disabled:
            self._session = None
            self._emit(SessionEventType.SIGNED_OUT.value, None)
            return
        try:  # pragma: no cover - network
            self._client.auth.sign_out()
        except Exception as exc:  # pragma: no cover - network
            raise AuthenticationError(_message(exc, "Sign-out failed")) from exc

    def subscribe(self, handler: SessionEventHandler) -> SessionSubscription:
        subscription = SessionSubscription(handler)
        if self.disabled:
            self._subscriptions.append(subscription)
            subscription.attach(lambda: self._subscriptions.remove(subscription))
            return subscription
        handle = self._client.auth.on_auth_state_change(subscription.dispatch)
        subscription.attach(handle.unsubscribe)
        return subscription

    def complete_oauth(self, email: str, metadata: dict[str, Any] | None = None) -> Session:
        """Local stand-in for the browser returning from the OAuth redirect."""
        if not self.disabled:
            raise RuntimeError("complete_oauth is only available with SUPABASE_DISABLED=1")
        account = self._accounts.get(email.lower())
        if account is None:
            identity = AuthIdentity(
                id=str(uuid.uuid4()),
                email=email,
                email_confirmed_at=datetime.now(UTC),
                user_metadata=dict(metadata or {}),
            )
            account = self._create_account(identity, None)
        return self._start_session(account.identity)

    def _create_account(self, identity: AuthIdentity, password: str | None) -> _LocalAccount:
        # the provisioning trigger runs before any SIGNED_IN is observable, and
        # an identity whose profile cannot be created is never registered
        if self._on_identity_created is not None:
            self._on_identity_created(identity)
        account = _LocalAccount(identity=identity, password=password)
        self._accounts[identity.email.lower()] = account
        return account

    def _start_session(self, identity: AuthIdentity) -> Session:
        self._session = Session(
            identity=identity,
            access_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
        )
        self._emit(SessionEventType.SIGNED_IN.value, self._session)
        return self._session

    def _emit(self, event: str, session: Session | None) -> None:
        for subscription in list(self._subscriptions):
            subscription.dispatch(event, session)


def to_identity(user: Any) -> AuthIdentity:
    """Convert a Supabase auth user into an AuthIdentity."""
    confirmed = getattr(user, "email_confirmed_at", None)
    if isinstance(confirmed, str):
        confirmed = datetime.fromisoformat(confirmed)
    return AuthIdentity(
        id=str(user.id),
        email=user.email or "",
        email_confirmed_at=confirmed,
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def to_session(raw: Any) -> Session | None:
    if raw is None or isinstance(raw, Session):
        return raw
    if getattr(raw, "user", None) is None:
        return None
    return Session(
        identity=to_identity(raw.user),
        access_token=getattr(raw, "access_token", None),
        refresh_token=getattr(raw, "refresh_token", None),
    )


def _message(exc: Exception, default: str) -> str:
    return getattr(exc, "message", None) or str(exc) or default
