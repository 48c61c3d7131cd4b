"""Image verification boundary: species identification and health check-ins.

Both calls go to Gemini with a JSON response schema and are parsed into
AiVerificationResult / AiProgressResult. Failures surface as:
  ServiceUnavailable  - the call could not complete (timeout, network, API error)
  MalformedResponse   - the answer is empty, not JSON, or missing fields
Nothing is retried here; callers decide.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from geogenesis.config import Settings
from geogenesis.errors import MalformedResponse, ServiceUnavailable
from geogenesis.schemas.verification import AiProgressResult, AiVerificationResult
from geogenesis.services.photo_service import detect_mime_type

logger = logging.getLogger(__name__)

VERIFY_PROMPT = (
    "Analyze this image. Is it a newly planted tree, sapling, or seed? "
    "If yes, identify the species (or 'unknown' if unsure) and assess its initial "
    "planting quality. Provide a short piece of advice."
)

PROGRESS_PROMPT = (
    "This is a check-in for a tree identified previously as a {species}. "
    "Analyze the image. Is the tree alive? Does it look healthy?"
)

VERIFY_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "isTree": types.Schema(type=types.Type.BOOLEAN),
        "species": types.Schema(type=types.Type.STRING),
        "healthAssessment": types.Schema(type=types.Type.STRING),
        "confidence": types.Schema(type=types.Type.NUMBER),
        "advice": types.Schema(type=types.Type.STRING),
    },
    required=["isTree", "species", "healthAssessment", "confidence", "advice"],
)

PROGRESS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "isSameTree": types.Schema(
            type=types.Type.BOOLEAN,
            description="Does the image contain a tree consistent with the species?",
        ),
        "growthDetected": types.Schema(type=types.Type.BOOLEAN),
        "healthStatus": types.Schema(
            type=types.Type.STRING, enum=["healthy", "struggling", "dead"]
        ),
        "message": types.Schema(
            type=types.Type.STRING, description="Encouraging message or care tip."
        ),
    },
    required=["isSameTree", "healthStatus", "message"],
)


class VerificationService(ABC):
    model_name: str = "unknown"

    @abstractmethod
    async def verify(self, image: bytes) -> AiVerificationResult:
        """Is this a newly planted tree, and which species?"""

    @abstractmethod
    async def assess_progress(self, image: bytes, species: str) -> AiProgressResult:
        """Health of a previously identified tree."""


def parse_result(model: type[BaseModel], text: str | None) -> BaseModel:
    if not text or not text.strip():
        raise MalformedResponse("Verification service returned an empty answer.")
    try:
        return model.model_validate_json(text)
    except ValidationError as e:
        raise MalformedResponse(f"Unexpected {model.__name__} payload: {e}") from e


class GeminiVerificationService(VerificationService):
    def __init__(
        self,
        api_key: str | None,
        model_name: str = "gemini-2.5-flash",
        timeout_s: float = 30.0,
        client: genai.Client | None = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_s = timeout_s
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiVerificationService":
        return cls(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            timeout_s=settings.verification_timeout_s,
        )

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def verify(self, image: bytes) -> AiVerificationResult:
        text = await self._generate(image, VERIFY_PROMPT, VERIFY_SCHEMA)
        result = parse_result(AiVerificationResult, text)
        logger.info(
            "Verified image: is_tree=%s species=%s confidence=%.2f",
            result.is_tree, result.species, result.confidence,
        )
        return result

    async def assess_progress(self, image: bytes, species: str) -> AiProgressResult:
        prompt = PROGRESS_PROMPT.format(species=species)
        text = await self._generate(image, prompt, PROGRESS_SCHEMA)
        result = parse_result(AiProgressResult, text)
        logger.info(
            "Assessed progress of %s: %s (same_tree=%s)",
            species, result.health_status.value, result.is_same_tree,
        )
        return result

    async def _generate(self, image: bytes, prompt: str, schema: types.Schema) -> str | None:
        contents = [
            types.Part.from_bytes(data=image, mime_type=detect_mime_type(image)),
            prompt,
        ]
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        try:
            client = self._get_client()
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model_name, contents=contents, config=config
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Gemini call timed out after %.1fs", self.timeout_s)
            raise ServiceUnavailable(f"Verification timed out after {self.timeout_s:.0f}s") from e
        except Exception as e:
            logger.warning("Gemini call failed: %s", e)
            raise ServiceUnavailable(f"Verification service call failed: {e}") from e
        return response.text
