"""Turn the model's free-form reply into an :class:`AnalysisResult`.

The model is asked for JSON shaped like::

    {"fullString": "421", "digits": [{"value": "4", "confidence": "High"}, ...]}

but nothing forces it to comply, so the reply is treated as untrusted text.
Parsing degrades in three tiers and never raises:

1. strict JSON decode of the outermost ``{...}`` span;
2. when that fails, every standalone run of decimal digits anywhere in the
   reply, each character reported with ``Low`` confidence;
3. when neither yields a digit, the ``unknown`` result.

Tier 2 scans explanatory prose too ("digit 4 of 5" reads as "45"), a known
source of false positives that is kept as-is.
"""
import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

from ..core.entities import AnalysisResult, Classification, Confidence, DetectedDigit

logger = logging.getLogger(__name__)

_JSON_SPAN = re.compile(r"\{.*\}", re.DOTALL)
_DIGIT_RUN = re.compile(r"\b[0-9]+\b", re.ASCII)
_DIGIT = re.compile(r"[0-9]")


def _decode_structured(raw_text: str) -> Optional[dict]:
    """Strictly decode the outermost braces span, or return None."""
    match = _JSON_SPAN.search(raw_text)
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _coerce_digits(entries: Any) -> List[DetectedDigit]:
    """Keep the well-formed entries of a decoded ``digits`` array.

    An entry whose value holds several digits ("42") is split into one digit
    per character with the entry's confidence; entries with no digit are dropped.
    """
    if not isinstance(entries, list):
        return []

    digits: List[DetectedDigit] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        value = entry.get("value")
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            continue
        confidence = Confidence.parse(entry.get("confidence"))
        digits.extend(DetectedDigit(char, confidence) for char in _DIGIT.findall(value))
    return digits


def _low_confidence(chars: Iterable[str]) -> List[DetectedDigit]:
    return [DetectedDigit(char, Confidence.LOW) for char in chars]


def _from_structured(parsed: dict) -> Tuple[str, List[DetectedDigit]]:
    digits = _coerce_digits(parsed.get("digits"))

    full_string = parsed.get("fullString")
    if isinstance(full_string, (int, float)) and not isinstance(full_string, bool):
        full_string = str(full_string)
    full_string = "".join(full_string.split()) if isinstance(full_string, str) else ""

    if not full_string:
        full_string = "".join(digit.value for digit in digits)
    elif not digits:
        digits = _low_confidence(_DIGIT.findall(full_string))

    return full_string, digits


def _from_text(raw_text: str) -> Tuple[str, List[DetectedDigit]]:
    full_string = "".join(_DIGIT_RUN.findall(raw_text))
    return full_string, _low_confidence(full_string)


def parse(raw_text: Optional[str]) -> AnalysisResult:
    """Parse a model reply. Always returns a well-formed result."""
    raw_text = raw_text or ""

    parsed = _decode_structured(raw_text)
    if parsed is not None:
        full_string, digits = _from_structured(parsed)
    else:
        logger.warning(f"Structured decode failed, falling back to digit scan: {raw_text!r}")
        full_string, digits = _from_text(raw_text)

    if not full_string or not digits:
        logger.info("No digits recognized in model reply")
        return AnalysisResult.unknown(raw_text)

    classification = Classification.MULTIPLE if len(digits) > 1 else Classification.SINGLE
    return AnalysisResult(
        classification=classification,
        identified_number=full_string,
        digits=tuple(digits),
        raw_response=raw_text,
    )
