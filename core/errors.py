"""Exception hierarchy for DayGrid."""

from __future__ import annotations


class DayGridError(Exception):
    """Base class for all DayGrid errors."""


class AuthError(DayGridError):
    """Authentication failure with a stable code and a user-facing message."""

    code = "auth/error"
    user_message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class AccessNotProvisionedError(AuthError):
    code = "auth/access-key-missing"
    user_message = "Access not provisioned for this email."


class InvalidAccessKeyError(AuthError):
    code = "auth/invalid-access-key"
    user_message = "Invalid access key."


class InvalidCredentialsError(AuthError):
    code = "auth/invalid-credential"
    user_message = "Invalid email or password."


class EmailAlreadyInUseError(AuthError):
    code = "auth/email-already-in-use"
    user_message = "This email is already registered. Please sign in instead."


class WeakPasswordError(AuthError):
    code = "auth/weak-password"
    user_message = "Password is too short."


class InvalidEmailError(AuthError):
    code = "auth/invalid-email"
    user_message = "Please enter a valid email address."


class StoreError(DayGridError):
    """A read or write against the document store failed."""


class NotCurrentPeriodError(DayGridError, ValueError):
    """A mark-done target lies outside the current day, week or month."""
