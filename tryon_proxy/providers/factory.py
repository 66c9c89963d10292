from ..errors import UnknownProviderError
from .base import ProviderConfig, ProviderName, TryOnProvider
from .gemini import GeminiProvider
from .huggingface import HuggingFaceProvider


def supported_providers() -> list[str]:
    return [name.value for name in ProviderName]


def parse_provider_name(name: str) -> ProviderName:
    try:
        return ProviderName(name.strip().lower())
    except ValueError:
        raise UnknownProviderError(
            f"Unknown provider '{name}'. Supported: {', '.join(supported_providers())}"
        ) from None


def get_provider(name: str, config: ProviderConfig) -> TryOnProvider:
    provider_name = parse_provider_name(name)
    if provider_name is ProviderName.GEMINI:
        return GeminiProvider(config)
    return HuggingFaceProvider(config)
