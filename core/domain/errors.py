"""
Error taxonomy for the Azure DevOps integration layer.

Upstream HTTP failures are classified once, at the transport boundary, into one
of these exceptions. Higher layers pass them through unchanged.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Machine-distinguishable failure categories."""
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    AUTH_ERROR = "AUTH_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK = "NETWORK"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    VALIDATION = "VALIDATION"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"


class ADOIntegrationError(Exception):
    """Base class for all classified integration failures.

    Attributes:
        message: Human-readable message; the upstream text verbatim when available
        kind: Classified failure category
        status_code: HTTP status that produced the failure, if any
        details: Extra diagnostic fields (never contains credentials)
    """

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        kind: Optional[ErrorKind] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the route layer."""
        return {
            "success": False,
            "error": self.kind.value,
            "message": self.message,
            "statusCode": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, status_code={self.status_code}, message={self.message!r})"


class MissingCredential(ADOIntegrationError):
    """No PAT or organization URL could be resolved for the request."""
    kind = ErrorKind.MISSING_CREDENTIAL


class AuthError(ADOIntegrationError):
    kind = ErrorKind.AUTH_ERROR


class Forbidden(ADOIntegrationError):
    kind = ErrorKind.FORBIDDEN


class NotFound(ADOIntegrationError):
    kind = ErrorKind.NOT_FOUND


class RateLimited(ADOIntegrationError):
    kind = ErrorKind.RATE_LIMITED


class NetworkUnreachable(ADOIntegrationError):
    """DNS failure, refused connection or timeout; no HTTP status exists."""
    kind = ErrorKind.NETWORK


class UpstreamServerError(ADOIntegrationError):
    kind = ErrorKind.UPSTREAM_ERROR


class ValidationError(ADOIntegrationError):
    """Rejected input, either locally (status_code is None) or by the backend (4xx)."""
    kind = ErrorKind.VALIDATION


ERRORS_BY_KIND = {
    ErrorKind.MISSING_CREDENTIAL: MissingCredential,
    ErrorKind.AUTH_ERROR: AuthError,
    ErrorKind.FORBIDDEN: Forbidden,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.RATE_LIMITED: RateLimited,
    ErrorKind.NETWORK: NetworkUnreachable,
    ErrorKind.UPSTREAM_ERROR: UpstreamServerError,
    ErrorKind.VALIDATION: ValidationError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str,
    status_code: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None
) -> ADOIntegrationError:
    """Instantiate the exception class registered for ``kind``."""
    error_class = ERRORS_BY_KIND.get(kind, ADOIntegrationError)
    return error_class(message, status_code=status_code, details=details, kind=kind)
