"""Error taxonomy for the check-in service.

Each error carries the wire ``code`` the action dispatcher reports back to the
client in the ``{success: false, code, error}`` envelope.
"""


class KoShareError(Exception):
    """Base class for errors surfaced to API callers."""

    code: str = 'INTERNAL_ERROR'

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(KoShareError):
    """Malformed or out-of-range input; nothing was persisted."""

    code = 'VALIDATION_ERROR'


class AuthError(KoShareError):
    """Missing, unknown or expired session token."""

    code = 'AUTH_REQUIRED'


class RateLimitError(KoShareError):
    """Too many failed logins inside the rate window."""

    code = 'RATE_LIMITED'


class NoCredentialError(KoShareError):
    """No PIN has been configured yet."""

    code = 'NO_PIN'


class WrongCredentialError(KoShareError):
    """The supplied PIN does not match the stored digest."""

    code = 'WRONG_PIN'


class NotFoundError(KoShareError):
    """Lookup or delete of an unknown check-in id."""

    code = 'NOT_FOUND'


class SizeLimitError(KoShareError):
    """Thumbnail payload over the size ceiling."""

    code = 'SIZE_LIMIT'


class UnknownActionError(KoShareError):
    """The request named an action the dispatcher does not know."""

    code = 'UNKNOWN_ACTION'
