from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class AuthIdentity:
    id: str  # user id from Supabase auth
    email: str
    email_confirmed_at: datetime | None = None
    user_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


@dataclass(frozen=True)
class Session:
    identity: AuthIdentity
    access_token: str | None = None
    refresh_token: str | None = None


class SessionEventType(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"

    @classmethod
    def parse(cls, raw: str) -> SessionEventType | None:
        """Return the event type for a provider event name, None if it is not tracked."""
        value = getattr(raw, "value", raw)
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class SessionEvent:
    type: SessionEventType
    session: Session | None = None
