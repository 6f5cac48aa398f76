"""Error taxonomy shared by the persistence, identity and session layers."""
from __future__ import annotations


class FoodBridgeError(Exception):
    """Base class for errors raised by FoodBridge components."""


class ValidationError(FoodBridgeError):
    """A constraint was violated. The message is safe to show to the user."""


class UniqueViolationError(ValidationError):
    """A row with the same key already exists."""


class NotFoundError(FoodBridgeError):
    """The requested row does not exist (yet)."""


class TransientQueryError(FoodBridgeError, RuntimeError):
    """The persistence service failed or could not be reached."""


class AuthenticationError(FoodBridgeError):
    """The identity provider rejected a sign-in, sign-up or OAuth request."""
