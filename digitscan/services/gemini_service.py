"""Gemini client for handwritten digit recognition.

One logical call per image: the normalized JPEG and a fixed instruction text
are sent together, with a JSON response hint and a low temperature. The reply
is returned verbatim; interpreting it is the response parser's job.
"""

import logging
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from ..config.defaults import DEFAULT_CONFIG
from ..core.entities import NormalizedImage, RecognitionRequest
from ..core.exceptions import MissingCredentialsError

logger = logging.getLogger(__name__)

DIGIT_PROMPT = """
Look at this image. It contains handwritten digits.
Identify the numbers visible in the image, reading from left to right.

Rules:
1. Ignore scribbles, cross-outs, or noise.
2. If a number is messy, make your best guess.
3. Distinguish 4 from 9, and 1 from 7 carefully.
4. If there are multiple numbers (like "4 2 1"), list them all.
5. If the image does not contain any digits (e.g. it's a face, landscape, or letters), return an empty fullString.

Return ONLY a JSON object in this format:
{
  "fullString": "421",
  "digits": [
    { "value": "4", "confidence": "High" },
    { "value": "2", "confidence": "Medium" },
    { "value": "1", "confidence": "High" }
  ]
}
""".strip()


class GeminiService:
    """Service for sending digit-recognition requests to Google Gemini.

    The client is created lazily on first use. Without an API key the service
    stays ``not_configured`` and every request raises
    :class:`MissingCredentialsError` without touching the network.
    """

    def __init__(self, api_key: Optional[str],
                 model: str = DEFAULT_CONFIG["gemini_model"],
                 temperature: float = DEFAULT_CONFIG["gemini_temperature"],
                 max_tokens: int = DEFAULT_CONFIG["gemini_max_tokens"],
                 timeout: float = DEFAULT_CONFIG["gemini_timeout"]):
        """Initialize Gemini service.

        Args:
            api_key: Google AI API key
            model: Gemini model name
            temperature: Response temperature (0-1)
            max_tokens: Maximum response tokens
            timeout: Transport timeout in seconds
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None
        self._initialized = False
        self._last_error: Optional[str] = None
        self._connection_status: str = "not_configured"  # not_configured, ready, error

    @classmethod
    def from_config(cls, config) -> "GeminiService":
        """Build a service from an :class:`EnvironmentConfig`."""
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            temperature=config.gemini_temperature,
            max_tokens=config.gemini_max_tokens,
            timeout=config.gemini_timeout,
        )

    def initialize(self) -> bool:
        """Create the google-genai client.

        Returns:
            True if initialized successfully, False otherwise
        """
        self._last_error = None

        if not self.api_key or self.api_key.strip() == "":
            self._last_error = "API key is empty"
            self._connection_status = "not_configured"
            logger.error("Gemini API key is not configured")
            return False

        try:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        except Exception as e:
            self._last_error = str(e)
            self._connection_status = "error"
            logger.error(f"Error initializing Gemini client: {e}")
            return False

        self._initialized = True
        self._connection_status = "ready"
        logger.info(f"Gemini service initialized with model: {self.model}")
        return True

    def is_initialized(self) -> bool:
        return self._initialized

    def get_connection_status(self) -> Dict[str, Any]:
        return {
            "status": self._connection_status,
            "model": self.model,
            "initialized": self._initialized,
            "last_error": self._last_error,
        }

    def build_prompt(self) -> str:
        return DIGIT_PROMPT

    def build_request(self, image: NormalizedImage) -> RecognitionRequest:
        return RecognitionRequest(image=image, prompt=self.build_prompt(),
                                  temperature=self.temperature)

    def _build_generation_config(self, request: RecognitionRequest) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=request.temperature,
            max_output_tokens=self.max_tokens,
            response_mime_type=request.response_mime_type,
            thinking_config=types.ThinkingConfig(thinking_budget=0),  # Disables thinking
        )

    def build_contents(self, request: RecognitionRequest) -> list:
        image = request.image
        return [
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
            request.prompt,
        ]

    def generate_digits(self, request: RecognitionRequest) -> str:
        """Send one recognition request and return the raw reply text.

        Blocking; callers that need a deadline run this in a worker thread.

        Raises:
            MissingCredentialsError: If no API key is configured
            Exception: Any transport or provider error, unmodified
        """
        if not self._initialized and not self.initialize():
            raise MissingCredentialsError(self._last_error or "Gemini client unavailable")

        image = request.image
        logger.info(f"Sending {image.width}x{image.height} image ({len(image.data)} bytes) "
                    f"to {self.model}")
        response = self._client.models.generate_content(
            model=self.model,
            contents=self.build_contents(request),
            config=self._build_generation_config(request),
        )

        text = response.text if response is not None else None
        if not text:
            logger.warning(self._diagnose_empty_response(response))
            return ""

        logger.info(f"Gemini raw response: {text}")
        return text

    def _diagnose_empty_response(self, response) -> str:
        """Explain why a Gemini response carried no text."""
        if not response:
            return "Empty response - response object is None"

        diagnostics = []

        feedback = getattr(response, 'prompt_feedback', None)
        if feedback and getattr(feedback, 'block_reason', None):
            diagnostics.append(f"PROMPT BLOCKED - Reason: {feedback.block_reason}")

        candidates = getattr(response, 'candidates', None)
        if not candidates:
            diagnostics.append("No candidates in response")
            return "Empty response - " + "; ".join(diagnostics)

        candidate = candidates[0]
        finish_reason = getattr(candidate, 'finish_reason', None)
        if finish_reason is not None:
            diagnostics.append(f"Finish reason: {finish_reason}")
            if str(finish_reason).split('.')[-1] == 'MAX_TOKENS':
                diagnostics.append(f"Response truncated at max_tokens={self.max_tokens}")

        if getattr(candidate, 'finish_message', None):
            diagnostics.append(f"Finish message: {candidate.finish_message}")

        content = getattr(candidate, 'content', None)
        if not content or not getattr(content, 'parts', None):
            diagnostics.append("Candidate has no content parts")

        return "Empty response - " + "; ".join(diagnostics)
