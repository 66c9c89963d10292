from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from ..models import GenerationResult, ImagePayload, ValidationResult


class ProviderName(str, Enum):
    GEMINI = "gemini"
    HUGGINGFACE = "huggingface"


@dataclass(frozen=True)
class ProviderConfig:
    api_key: str | None = None
    model: str | None = None
    hf_token: str | None = None
    timeout: float = 120.0
    fetch_timeout: float = 30.0


@runtime_checkable
class TryOnProvider(Protocol):
    """Capability shared by every try-on backend.

    Implementations need not inherit from this class; the factory only relies
    on the two coroutine methods below.
    """

    async def generate_try_on(self, user_image: ImagePayload, product_image: ImagePayload) -> GenerationResult:
        """Return a normalized GenerationResult or raise ProviderError."""
        raise NotImplementedError("Method 'generate_try_on' must be implemented")

    async def validate(self) -> ValidationResult:
        """Check credentials/connectivity. Never raises."""
        raise NotImplementedError("Method 'validate' must be implemented")
