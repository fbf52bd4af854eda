"""
auth/errors.py -- Exception taxonomy for the auth core.

Each class carries an HTTP status_code and a stable error_code so the API
layer can map any AuthError onto the standard error envelope with a single
exception handler.

Internally every failure is distinct (for logging and audit). Externally,
AccountNotFound and InvalidCredentials share one public code and message so a
caller cannot tell whether a username exists.

Layer rule: no imports from api/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth-core failures mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "auth_error"
    public_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class AccountNotFound(AuthError):
    # Shares the bad_credentials response with InvalidCredentials.
    status_code = 401
    error_code = "bad_credentials"
    public_message = "Invalid username or password."


class InvalidCredentials(AuthError):
    status_code = 401
    error_code = "bad_credentials"
    public_message = "Invalid username or password."


class AccountInactive(AuthError):
    """The account is inactive, disabled or locked."""

    status_code = 403
    error_code = "account_inactive"
    public_message = "Account is inactive or locked."


class TooManyFailures(AccountInactive):
    """The failed attempt that was just recorded locked the account."""

    public_message = "Account locked after too many failed login attempts."


class MalformedToken(AuthError):
    """Signature, structure or issuer check failed while decoding."""

    status_code = 401
    error_code = "invalid_token"
    public_message = "Invalid token."


class InvalidToken(AuthError):
    """The token decoded but is expired, of the wrong kind, or for another subject."""

    status_code = 401
    error_code = "invalid_token"
    public_message = "Invalid token."


class WrongTokenKind(InvalidToken):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Expected a {expected} token, got a {actual} token.")
        self.expected = expected
        self.actual = actual


class WeakPassword(AuthError):
    status_code = 400
    error_code = "weak_password"
    public_message = (
        "Password must be at least 8 characters and contain an uppercase letter, a lowercase letter and a digit."
    )


class AccountConflict(AuthError):
    status_code = 409
    error_code = "conflict"
    public_message = "A user with that username or email already exists."


class PasswordTooLong(AuthError):
    """The password exceeds bcrypt's 72-byte input limit once UTF-8 encoded."""

    status_code = 400
    error_code = "password_too_long"
    public_message = "Password must be at most 72 bytes when UTF-8 encoded."
