"""Domain entities (data-only structures) used across services."""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

# Older mimetypes tables do not know about WebP.
mimetypes.add_type("image/webp", ".webp")

UNKNOWN_NUMBER = "Unknown"


class Classification(str, Enum):
    """Coarse bucket assigned to a recognition outcome by digit count."""
    SINGLE = "single"
    MULTIPLE = "multiple"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    """Per-digit reliability label reported by the model or assigned heuristically."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Case-insensitive lookup; anything unrecognised is treated as Low."""
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return cls.LOW


@dataclass(slots=True, frozen=True)
class RawImage:
    """A user-supplied file, as handed over by the file source."""
    content: bytes
    mime_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "RawImage":
        """Read a file from disk, inferring its declared MIME type from the extension."""
        path = Path(path)
        if mime_type is None:
            guessed, _ = mimetypes.guess_type(path.name)
            mime_type = guessed or "application/octet-stream"
        return cls(content=path.read_bytes(), mime_type=mime_type, filename=path.name)


@dataclass(slots=True, frozen=True)
class NormalizedImage:
    """Resized, white-flattened, contrast-enhanced JPEG ready for transmission."""
    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"

    @property
    def longest_edge(self) -> int:
        return max(self.width, self.height)


@dataclass(slots=True, frozen=True)
class RecognitionRequest:
    """One model call: the image, the fixed instructions and sampling settings."""
    image: NormalizedImage
    prompt: str
    temperature: float
    response_mime_type: str = "application/json"


@dataclass(slots=True, frozen=True)
class DetectedDigit:
    value: str                 # single character, e.g. "4"
    confidence: Confidence = Confidence.LOW

    def to_dict(self) -> Dict[str, str]:
        return {"value": self.value, "confidence": self.confidence.value}


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    """Terminal artifact of one recognition run.

    The invariants between ``classification``, ``digits`` and
    ``identified_number`` are checked on construction, so any instance that
    exists is safe to hand to a presentation layer.
    """
    classification: Classification
    identified_number: str
    digits: Tuple[DetectedDigit, ...] = field(default_factory=tuple)
    raw_response: str = ""

    def __post_init__(self):
        count = len(self.digits)
        if not self.identified_number:
            raise ValueError("identified_number must not be empty")
        if (count == 0) != (self.classification is Classification.UNKNOWN):
            raise ValueError(f"{count} digit(s) is inconsistent with classification "
                             f"'{self.classification.value}'")
        if (count > 1) != (self.classification is Classification.MULTIPLE):
            raise ValueError(f"{count} digit(s) is inconsistent with classification "
                             f"'{self.classification.value}'")

    @classmethod
    def unknown(cls, raw_response: str) -> "AnalysisResult":
        return cls(
            classification=Classification.UNKNOWN,
            identified_number=UNKNOWN_NUMBER,
            digits=(),
            raw_response=raw_response,
        )

    @property
    def is_unknown(self) -> bool:
        return self.classification is Classification.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the presentation layer."""
        return {
            "classification": self.classification.value,
            "identifiedNumber": self.identified_number,
            "digits": [digit.to_dict() for digit in self.digits],
            "rawResponse": self.raw_response,
        }
