"""Error taxonomy shared by providers and the HTTP layer."""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    GENERATION_BLOCKED = "generation_blocked"
    EMPTY_OUTPUT = "empty_output"
    QUOTA_EXCEEDED = "quota_exceeded"
    UPSTREAM_BUSY = "upstream_busy"
    UPSTREAM_FAILURE = "upstream_failure"
    CONFIGURATION = "configuration"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.GENERATION_BLOCKED: 400,
    ErrorKind.EMPTY_OUTPUT: 400,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.UPSTREAM_BUSY: 500,
    ErrorKind.UPSTREAM_FAILURE: 500,
    ErrorKind.CONFIGURATION: 500,
}


class TryOnError(Exception):
    """Base error carrying a user-facing message and the kind that selects the HTTP status."""

    default_kind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, message: str, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ProviderError(TryOnError):
    """Raised by a provider when generation fails or yields no usable image."""


class UntrustedURLError(TryOnError):
    """Raised when a product image URL fails the allowlist check.

    The message holds the specific reason and is meant for logs only.
    """

    default_kind = ErrorKind.INVALID_INPUT
    public_message = "Invalid or untrusted product image URL."


class ProductImageError(TryOnError):
    """Raised when the product image cannot be downloaded."""


class UnknownProviderError(TryOnError):
    default_kind = ErrorKind.CONFIGURATION
