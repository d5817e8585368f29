"""
Generation capability: the only place that talks to Gemini.

The pipeline depends on the small ``GenerationCapability`` contract below,
never on the SDK directly, so stages and the session can be driven by a fake
in tests.
"""

import base64
from typing import Any, List, Optional, Protocol, Sequence

import google.generativeai as genai

from config import settings
from . import utils
from .errors import CapabilityUnavailable
from .schemas import ContentBlock

logger = utils.setup_logger(__name__)

ANALYSIS = "analysis"
GENERATION = "generation"


class GenerationCapability(Protocol):
    def generate(self, contents: Sequence[Any], response_schema: dict) -> str:
        """Return schema-conforming JSON text, or raise."""
        ...


def to_request_parts(contents: Sequence[Any]) -> List[Any]:
    """ContentBlocks become inline blobs (raw bytes); text passes through."""
    parts: List[Any] = []
    for item in contents:
        if isinstance(item, ContentBlock):
            parts.append({"mime_type": item.mime_type, "data": base64.b64decode(item.data)})
        else:
            parts.append(item)
    return parts


class GeminiCapability:
    """google-generativeai backed capability with JSON-mode + response schema."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: Optional[float] = None,
    ):
        api_key = api_key or settings.GOOGLE_API_KEY
        if not api_key:
            raise CapabilityUnavailable("GOOGLE_API_KEY is not set. Add it to your .env file.")

        self.model_name = model_name or settings.GEMINI_MODEL_NAME
        self.timeout = settings.REQUEST_TIMEOUT_SEC if timeout is None else timeout
        self.temperature = settings.GENERATION_TEMPERATURE if temperature is None else temperature

        try:
            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(self.model_name)
        except Exception as e:
            logger.error("Failed to initialize Gemini client: %s", e)
            raise CapabilityUnavailable(f"Gemini client initialisation failed: {e}") from e
        logger.info("Gemini client initialized. Using model: %s", self.model_name)

    def _generation_config(self, response_schema: dict):
        config = {
            "response_mime_type": "application/json",
            "response_schema": response_schema,
        }
        if self.temperature is not None:
            config["temperature"] = self.temperature
        return genai.types.GenerationConfig(**config)

    def generate(self, contents: Sequence[Any], response_schema: dict) -> str:
        request_options = {"timeout": self.timeout} if self.timeout else None
        response = self._model.generate_content(
            to_request_parts(contents),
            generation_config=self._generation_config(response_schema),
            request_options=request_options,
        )
        # .text raises ValueError when the candidate was blocked or empty
        return response.text


def make_capability(stage: str) -> GeminiCapability:
    """Default capability factory: one Gemini model per stage."""
    model_name = settings.ANALYSIS_MODEL_NAME if stage == ANALYSIS else settings.GENERATION_MODEL_NAME
    return GeminiCapability(model_name)
