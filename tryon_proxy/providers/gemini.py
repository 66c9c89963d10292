import logging
from typing import Any

import httpx

from ..config import DEFAULT_GEMINI_MODEL
from ..errors import ErrorKind, ProviderError
from ..models import GenerationResult, ImagePayload, ValidationResult
from .base import ProviderConfig

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

TRY_ON_PROMPT = (
    "Drape the clothing from the product image onto the person in the user photo, "
    "preserving face, pose, and background. Ensure realistic fit and high quality."
)

FREE_TIER_QUOTA_MESSAGE = (
    "Quota Exceeded. This model may require billing. Try 'gemini-2.0-flash-exp' for free access."
)
BILLING_QUOTA_MESSAGE = "Quota Exceeded. Please check your Google AI Studio billing."

logger = logging.getLogger(__name__)


def quota_message(model: str) -> str:
    # Rough heuristic: non-experimental flash models usually sit on the free tier.
    is_free_tier = "flash" in model and "exp" not in model
    return FREE_TIER_QUOTA_MESSAGE if is_free_tier else BILLING_QUOTA_MESSAGE


def _inline_part(image: ImagePayload) -> dict[str, Any]:
    return {"inline_data": {"mime_type": image.mime_type, "data": image.data}}


def _check_candidate(payload: dict[str, Any]) -> None:
    candidate = (payload.get("candidates") or [None])[0]
    if not candidate:
        raise ProviderError("Gemini returned no candidates.", ErrorKind.EMPTY_OUTPUT)

    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != "STOP":
        raise ProviderError(f"Blocked by Gemini. Reason: {finish_reason}", ErrorKind.GENERATION_BLOCKED)

    parts = (candidate.get("content") or {}).get("parts")
    if not parts:
        raise ProviderError("Gemini returned success but no image data.", ErrorKind.EMPTY_OUTPUT)


class GeminiProvider:
    def __init__(self, config: ProviderConfig, base_url: str = GEMINI_BASE_URL) -> None:
        self.config = config
        self.base_url = base_url

    @property
    def model(self) -> str:
        return self.config.model or DEFAULT_GEMINI_MODEL

    async def generate_try_on(self, user_image: ImagePayload, product_image: ImagePayload) -> GenerationResult:
        if not self.config.api_key:
            raise ProviderError("Gemini API Key is missing", ErrorKind.CONFIGURATION)

        model = self.model
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": TRY_ON_PROMPT},
                        _inline_part(user_image),
                        _inline_part(product_image),
                    ]
                }
            ]
        }

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/models/{model}:generateContent",
                    headers={
                        "Content-Type": "application/json",
                        "x-goog-api-key": self.config.api_key,
                    },
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Gemini request timed out after {self.config.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Gemini request failed: {exc}") from exc

        if response.status_code == 429:
            logger.warning("Gemini quota exceeded for model %s", model)
            raise ProviderError(quota_message(model), ErrorKind.QUOTA_EXCEEDED)
        if response.status_code >= 400:
            raise ProviderError(f"Gemini API Error {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("Gemini returned a non-JSON response.") from exc

        _check_candidate(data)
        return data

    async def validate(self) -> ValidationResult:
        if not self.config.api_key:
            return ValidationResult(valid=False, error="No API Key")

        try:
            async with httpx.AsyncClient(timeout=self.config.fetch_timeout) as client:
                response = await client.get(
                    f"{self.base_url}/models",
                    headers={"x-goog-api-key": self.config.api_key},
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            return ValidationResult(valid=False, error=str(exc) or exc.__class__.__name__)
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            error_obj = data.get("error")
            message = error_obj.get("message") if isinstance(error_obj, dict) else None
            return ValidationResult(valid=False, error=message or "Validation failed")

        listed = data.get("models")
        models = [
            model["name"].removeprefix("models/")
            for model in (listed if isinstance(listed, list) else [])
            if isinstance(model, dict) and isinstance(model.get("name"), str) and model["name"]
        ]
        return ValidationResult(valid=True, models=models)
