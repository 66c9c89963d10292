from .base import ProviderConfig, ProviderName, TryOnProvider
from .factory import get_provider, parse_provider_name, supported_providers
from .gemini import GeminiProvider
from .huggingface import HuggingFaceProvider

__all__ = [
    "GeminiProvider",
    "HuggingFaceProvider",
    "ProviderConfig",
    "ProviderName",
    "TryOnProvider",
    "get_provider",
    "parse_provider_name",
    "supported_providers",
]
