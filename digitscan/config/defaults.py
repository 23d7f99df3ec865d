"""Fixed pipeline constants.

These are part of the recognition contract and are deliberately not read from
the environment.
"""

from typing import Any, Dict, FrozenSet

# Input validation
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024  # 5MB
ALLOWED_MIME_TYPES: FrozenSet[str] = frozenset({"image/jpeg", "image/png", "image/webp"})

# Preprocessing
MAX_IMAGE_EDGE = 1000
JPEG_QUALITY = 90
CONTRAST_FACTOR = 1.2
BRIGHTNESS_FACTOR = 1.05
BACKGROUND_COLOR = (255, 255, 255)

# Recognition
DEFAULT_CONFIG: Dict[str, Any] = {
    "gemini_api_key": "",
    "gemini_model": "gemini-2.5-flash",
    "gemini_timeout": 60,
    "gemini_temperature": 0.1,  # low but nonzero, lets the model best-guess messy strokes
    "gemini_max_tokens": 2048,
    "debug_logging": False,
    "log_dir": None,
    "log_format": "text",
}

LOG_FORMATS = ("text", "json")

BUSY_TICK_SECONDS = 0.1
