"""
Error taxonomy for the workflow engine.
Each error carries the HTTP status the API layer responds with.
"""


class GigworkError(Exception):
    """Base class for every error surfaced to callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GigworkError):
    """Malformed or missing input, detected before any remote call."""
    status_code = 400


class DuplicateEmailError(ValidationError):
    """The identity service already has an account for this email."""
    status_code = 409


class AuthError(GigworkError):
    """Bad credentials, missing or expired session."""
    status_code = 401


class ForbiddenError(AuthError):
    """Authenticated, but the role or approval state does not allow the action."""
    status_code = 403


class NotFoundError(GigworkError):
    status_code = 404


class InvalidStateError(GigworkError):
    """Transition attempted from a non-eligible status."""
    status_code = 409


class InsufficientBalanceError(GigworkError):
    status_code = 400


class RemoteError(GigworkError):
    """Backing service failure: network, quota, permission."""
    status_code = 502


class ConditionFailedError(GigworkError):
    """
    A conditional write lost against the current document state.

    Attributes:
        index: Position of the failing operation inside a transaction, if known
    """
    status_code = 409

    def __init__(self, message: str, index: int = None):
        super().__init__(message)
        self.index = index
