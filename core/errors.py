"""Error taxonomy shared by the session manager, workflow engine and clients."""
from typing import Dict, List, Optional


class PortalError(Exception):
    """Base class for every error raised by the portal core."""


class ValidationError(PortalError):
    """Raised when input is malformed; always raised before any backend call."""

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class AuthBackendError(PortalError):
    """Raised when the authentication backend cannot be reached or fails."""


class InvalidCredentialsError(AuthBackendError):
    """Raised when a staff username/password pair is rejected."""


class InvalidCodeError(AuthBackendError):
    """Raised when a one-time code is wrong or expired."""


class BackendError(PortalError):
    """Raised on transport or server failure during a data operation."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(BackendError):
    """Raised when a status update targets a record the backend does not know."""


class SessionExpiredError(BackendError):
    """Raised when the backend no longer accepts the credential token."""


class AccessDeniedError(PortalError):
    """Raised when the current identity lacks the right for an operation."""
