"""Integration tests for the recognition pipeline.

A real GeminiService sits behind the orchestrator with only the google-genai
client mocked, so validation, normalization, request construction and parsing
all run for real.
"""
import io
import os
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from PIL import Image

from conftest import make_raw_image
from digitscan.core.entities import Classification, Confidence, RawImage
from digitscan.core.exceptions import ErrorKind, RecognitionError
from digitscan.services import GeminiService, RecognitionConfig, RecognitionOrchestrator


@pytest.fixture
def genai_client():
    with patch('digitscan.services.gemini_service.genai') as mock_genai:
        client = mock_genai.Client.return_value
        client.models.generate_content.return_value = SimpleNamespace(
            text='{"fullString":"421","digits":[{"value":"4","confidence":"High"},'
                 '{"value":"2","confidence":"Medium"},{"value":"1","confidence":"High"}]}'
        )
        yield client


@pytest.fixture
def pipeline():
    orchestrator = RecognitionOrchestrator(GeminiService("test_api_key_for_testing_only"),
                                           RecognitionConfig(timeout_seconds=5.0))
    yield orchestrator
    orchestrator.close()


@pytest.mark.integration
class TestRecognitionPipeline:

    @pytest.mark.asyncio
    async def test_end_to_end(self, pipeline, genai_client):
        result = await pipeline.recognize(make_raw_image(width=3000, height=1200))

        assert result.classification is Classification.MULTIPLE
        assert result.identified_number == "421"
        assert [d.confidence for d in result.digits] == [
            Confidence.HIGH, Confidence.MEDIUM, Confidence.HIGH]

        part, _ = genai_client.models.generate_content.call_args.kwargs["contents"]
        sent = Image.open(io.BytesIO(part.inline_data.data))
        assert sent.format == "JPEG"
        assert sent.size == (1000, 400)

    @pytest.mark.asyncio
    async def test_prose_reply_uses_fallback(self, pipeline, genai_client):
        genai_client.models.generate_content.return_value = SimpleNamespace(
            text="I see the number 7 written here")

        result = await pipeline.recognize(make_raw_image())

        assert result.classification is Classification.SINGLE
        assert result.digits[0].confidence is Confidence.LOW

    @pytest.mark.asyncio
    async def test_missing_key_is_auth_failure(self, genai_client):
        orchestrator = RecognitionOrchestrator(GeminiService(None))
        try:
            with pytest.raises(RecognitionError) as exc_info:
                await orchestrator.recognize(make_raw_image())
        finally:
            orchestrator.close()

        assert exc_info.value.kind is ErrorKind.AUTH_FAILURE
        genai_client.models.generate_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_key_is_auth_failure(self, pipeline, genai_client):
        genai_client.models.generate_content.side_effect = RuntimeError(
            "400 INVALID_ARGUMENT. API key not valid. Please pass a valid API key.")

        with pytest.raises(RecognitionError) as exc_info:
            await pipeline.recognize(make_raw_image())

        assert exc_info.value.kind is ErrorKind.AUTH_FAILURE

    def test_sync_caller(self, pipeline, genai_client):
        result = pipeline.recognize_sync(make_raw_image(fmt="JPEG", mime_type="image/jpeg"))

        assert result.identified_number == "421"


@pytest.mark.integration
@pytest.mark.skipif(not (os.getenv("GEMINI_API_KEY") and os.getenv("DIGITSCAN_LIVE_TESTS")),
                    reason="set GEMINI_API_KEY and DIGITSCAN_LIVE_TESTS=1 to call Gemini")
def test_live_recognition(temp_dir):
    """Send a real image to Gemini; only checks that a well-formed result comes back."""
    path = Path(temp_dir) / "blank.png"
    path.write_bytes(make_raw_image().content)
    orchestrator = RecognitionOrchestrator(GeminiService(os.environ["GEMINI_API_KEY"]))
    try:
        result = orchestrator.recognize_sync(RawImage.from_path(path))
    finally:
        orchestrator.close()

    assert result.classification in tuple(Classification)
    assert result.identified_number
