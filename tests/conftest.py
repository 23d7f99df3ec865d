"""Pytest configuration and shared fixtures for the digit recognition pipeline."""
import io
import logging
import sys
import tempfile
from pathlib import Path
from unittest.mock import Mock

import numpy as np
import pytest
from PIL import Image

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from digitscan.core.entities import RawImage, RecognitionRequest
from digitscan.services.gemini_service import DIGIT_PROMPT, GeminiService


logging.getLogger('PIL').setLevel(logging.WARNING)


def encode_image(image: Image.Image, fmt: str = "PNG", **save_kwargs) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


def make_raw_image(width: int = 120, height: int = 80, mode: str = "RGB",
                   color=(0, 0, 0), fmt: str = "PNG", mime_type: str = "image/png") -> RawImage:
    """Build an in-memory image with a dark stroke-like bar across the middle."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 255)
    background = (255, 255, 255, 255) if mode == "RGBA" else (255, 255, 255)
    image = Image.new(mode, (width, height), background)
    pixels = np.array(image)
    pixels[height // 3: 2 * height // 3, width // 4: 3 * width // 4] = color
    image = Image.fromarray(pixels)
    return RawImage(content=encode_image(image, fmt), mime_type=mime_type,
                    filename=f"sample.{fmt.lower()}")


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def raw_png():
    return make_raw_image()


@pytest.fixture
def raw_jpeg():
    return make_raw_image(fmt="JPEG", mime_type="image/jpeg")


@pytest.fixture
def large_raw_png():
    """A 2000x1000 image, larger than the normalization cap on its long edge."""
    return make_raw_image(width=2000, height=1000)


@pytest.fixture
def corrupt_png():
    """Declared as PNG and non-empty, but not decodable."""
    return RawImage(content=b"\x89PNG\r\n\x1a\n" + b"not really a png" * 8,
                    mime_type="image/png", filename="broken.png")


@pytest.fixture
def mock_gemini_service():
    """Provide a mock Gemini service that builds real requests."""
    service = Mock(spec=GeminiService)
    service.build_request.side_effect = lambda image: RecognitionRequest(
        image=image, prompt=DIGIT_PROMPT, temperature=0.1)
    service.generate_digits.return_value = (
        '{"fullString":"42","digits":[{"value":"4","confidence":"High"},'
        '{"value":"2","confidence":"Medium"}]}'
    )
    return service


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the configuration loader reads."""
    for key in ("GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_TIMEOUT", "GEMINI_TEMPERATURE",
                "GEMINI_MAX_TOKENS", "DEBUG_LOGGING", "LOG_DIR", "LOG_FORMAT"):
        monkeypatch.delenv(key, raising=False)
