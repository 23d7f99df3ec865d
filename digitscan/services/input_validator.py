"""Synchronous checks a file must pass before any decoding or network use."""
import logging
from typing import Optional

from ..config.defaults import ALLOWED_MIME_TYPES, MAX_FILE_SIZE_BYTES
from ..core.entities import RawImage
from ..core.exceptions import ErrorKind, ValidationError

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def validate(file: RawImage) -> Optional[ValidationError]:
    """Return the first rule ``file`` violates, or None when it is acceptable.

    Rules are checked in order: empty content, declared MIME type, size cap.
    Passing does not guarantee the bytes decode as an image.
    """
    if file.size == 0:
        return ValidationError(ErrorKind.EMPTY_FILE, "File is empty (0 bytes).")

    if file.mime_type not in ALLOWED_MIME_TYPES:
        return ValidationError(
            ErrorKind.UNSUPPORTED_TYPE,
            f"Unsupported file type '{file.mime_type or 'unknown'}'. "
            f"JPEG, PNG or WEBP required."
        )

    if file.size > MAX_FILE_SIZE_BYTES:
        size_mb = file.size / _MIB
        return ValidationError(
            ErrorKind.TOO_LARGE,
            f"File is too large ({size_mb:.2f}MB). Maximum size is "
            f"{MAX_FILE_SIZE_BYTES // _MIB}MB."
        )

    return None
