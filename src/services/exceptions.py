"""Shared exceptions for the bookmark sync services."""
from enum import StrEnum


class ValidationReason(StrEnum):
    """Why a submitted bookmark was rejected before any network call."""

    EMPTY_INPUT = "empty-input"
    DISALLOWED_SCHEME = "disallowed-scheme"
    INVALID_DOMAIN = "invalid-domain"
    INVALID_URL = "invalid-url"
    TITLE_TOO_LONG = "title-too-long"


_VALIDATION_MESSAGES = {
    ValidationReason.EMPTY_INPUT: "Please enter a URL.",
    ValidationReason.DISALLOWED_SCHEME: "Only http and https links can be saved.",
    ValidationReason.INVALID_DOMAIN: "Please enter a valid domain (e.g., example.com).",
    ValidationReason.INVALID_URL: "Please enter a valid URL.",
    ValidationReason.TITLE_TOO_LONG: "Title is too long.",
}


class BookmarkValidationError(Exception):
    """
    Raised when user input fails URL or title validation.

    Handled entirely locally: surfaced as a field-level message and the submission is
    blocked without contacting the store.
    """

    def __init__(self, reason: ValidationReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or _VALIDATION_MESSAGES[reason])


class StoreError(Exception):
    """Base exception for failures talking to the remote bookmark store."""

    reason = "store-error"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class StoreUnreachableError(StoreError):
    """Raised when the store cannot be read (transport error or server failure)."""

    reason = "unreachable"


class StoreWriteRejectedError(StoreError):
    """Raised when an insert or delete is rejected or cannot be delivered."""

    reason = "write-rejected"


class SubscriptionError(Exception):
    """
    Raised when the change feed channel cannot connect or drops.

    Never surfaced to the user beyond the connectivity indicator; the subscriber
    reconnects on its own.
    """

    reason = "connect-failed"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SessionError(Exception):
    """Raised when the current session is missing, expired, or revoked."""

    reason = "unauthenticated"

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)
