"""Error taxonomy for the synchronization layer."""

from dataclasses import dataclass


class SyncError(Exception):
    """Base class for errors surfaced by the sync layer."""

    tag = "sync_error"
    retryable = False

    @property
    def message(self) -> str:
        return str(self) or self.tag


class AuthRequired(SyncError):
    """The session is missing or expired; the user must log in again."""

    tag = "auth_required"

    def __init__(
        self, message: str = "Authentication required. Please log in again."
    ) -> None:
        super().__init__(message)


class NetworkError(SyncError):
    """Transport-level failure talking to a remote collaborator."""

    tag = "network_error"
    retryable = True


class RemoteError(SyncError):
    """The remote source answered with an error."""

    tag = "remote_error"
    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(SyncError):
    """No record with the requested id is present locally."""

    tag = "not_found"


class InvalidOperation(SyncError):
    """The record does not support the requested mutation."""

    tag = "invalid_operation"


class FilterValidationError(SyncError):
    """Numeric filter input is malformed."""

    tag = "validation_error"


class ParseError(SyncError):
    """Persisted filter state could not be parsed."""

    tag = "parse_error"


@dataclass(frozen=True)
class ErrorInfo:
    """Visible error state attached to a view."""

    tag: str
    message: str
    retryable: bool

    @classmethod
    def from_error(cls, error: SyncError) -> "ErrorInfo":
        return cls(tag=error.tag, message=error.message, retryable=error.retryable)
