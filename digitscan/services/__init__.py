"""Services package for the recognition pipeline."""

from .gemini_service import GeminiService
from .image_preprocessor import normalize
from .input_validator import validate
from .recognition_orchestrator import (
    NullListener, RecognitionConfig, RecognitionListener, RecognitionOrchestrator, WorkflowState,
)
from .response_parser import parse

__all__ = [
    "GeminiService", "normalize", "validate", "parse",
    "NullListener", "RecognitionConfig", "RecognitionListener",
    "RecognitionOrchestrator", "WorkflowState",
]
