"""Core domain entities and errors."""

from .entities import (
    AnalysisResult, Classification, Confidence, DetectedDigit,
    NormalizedImage, RawImage, UNKNOWN_NUMBER,
)
from .exceptions import (
    ApplicationError, DecodeError, ErrorKind, RecognitionError,
    RecognitionInProgressError, ValidationError,
)

__all__ = [
    "AnalysisResult", "Classification", "Confidence", "DetectedDigit",
    "NormalizedImage", "RawImage", "UNKNOWN_NUMBER",
    "ApplicationError", "DecodeError", "ErrorKind", "RecognitionError",
    "RecognitionInProgressError", "ValidationError",
]
