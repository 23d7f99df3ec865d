"""Custom exceptions for the recognition pipeline."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure taxonomy shared by validation, preprocessing and the provider call."""
    EMPTY_FILE = "EmptyFile"
    UNSUPPORTED_TYPE = "UnsupportedType"
    TOO_LARGE = "TooLarge"
    PREPROCESSING_FAILED = "PreprocessingFailed"
    TIMEOUT = "Timeout"
    AUTH_FAILURE = "AuthFailure"
    SERVICE_FAILURE = "ServiceFailure"

    @property
    def retryable(self) -> bool:
        """Whether resubmitting the same file can succeed."""
        return self in (ErrorKind.TIMEOUT, ErrorKind.SERVICE_FAILURE)

    @property
    def default_message(self) -> str:
        return _DEFAULT_MESSAGES[self]


_DEFAULT_MESSAGES = {
    ErrorKind.EMPTY_FILE: "File is empty (0 bytes).",
    ErrorKind.UNSUPPORTED_TYPE: "Unsupported file type. JPEG, PNG or WEBP required.",
    ErrorKind.TOO_LARGE: "File is too large. Maximum size is 5MB.",
    ErrorKind.PREPROCESSING_FAILED: "The file could not be decoded as an image.",
    ErrorKind.TIMEOUT: "The recognition service did not respond in time.",
    ErrorKind.AUTH_FAILURE: "Access denied. The API key is missing or invalid.",
    ErrorKind.SERVICE_FAILURE: "Failed to process image.",
}


class ApplicationError(Exception):
    """Base application error."""
    pass


class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass


class ValidationError(ApplicationError):
    """Input file rejected before any decoding or network use."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.default_message
        super().__init__(self.message)


class DecodeError(ApplicationError):
    """File passed validation but is not a decodable raster image."""
    pass


class ServiceError(ApplicationError):
    """Service operation errors."""
    pass


class AIServiceError(ServiceError):
    """AI service specific errors."""
    pass


class MissingCredentialsError(AIServiceError):
    """No API key is configured for the model provider."""
    pass


class RecognitionInProgressError(ApplicationError):
    """A recognition is already in flight for this orchestrator."""
    pass


class RecognitionError(ServiceError):
    """Pipeline failure surfaced to the presentation layer.

    ``message`` is safe to show to end users. ``detail`` keeps the underlying
    error text (for example the raw provider error) for debug views only.
    """

    def __init__(self, kind: ErrorKind, message: Optional[str] = None,
                 detail: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.default_message
        self.detail = detail
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @classmethod
    def from_validation(cls, error: ValidationError) -> "RecognitionError":
        return cls(error.kind, error.message)

    def __repr__(self) -> str:
        return f"RecognitionError(kind={self.kind.value!r}, message={self.message!r})"
