import logging
import os
import re
from dataclasses import dataclass, field, replace

DEFAULT_PROVIDER = "gemini"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-image"
DEFAULT_MAX_BODY_SIZE = "10mb"

SIZE_UNITS: dict[str, int] = {
    "": 1,
    "b": 1,
    "kb": 1024,
    "mb": 1024 * 1024,
    "gb": 1024 * 1024 * 1024,
}

logger = logging.getLogger(__name__)


def parse_size(raw: str) -> int:
    match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*", raw)
    if not match:
        raise ValueError(f"Invalid size: {raw!r}")
    number, unit = match.groups()
    multiplier = SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        raise ValueError(f"Invalid size unit in {raw!r}")
    return int(float(number) * multiplier)


def _split_domains(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    allowed_origin: str = "*"
    max_body_size: int = 10 * 1024 * 1024
    provider: str = DEFAULT_PROVIDER
    gemini_api_key: str | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    hf_token: str | None = None
    trusted_domains: tuple[str, ...] = ()
    admin_username: str = "admin"
    admin_password: str | None = None
    log_level: str = "INFO"
    upstream_timeout: float = 120.0
    fetch_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            port=int(os.getenv("PORT", "3000")),
            allowed_origin=os.getenv("ALLOWED_ORIGIN", "*"),
            max_body_size=parse_size(os.getenv("MAX_BODY_SIZE", DEFAULT_MAX_BODY_SIZE)),
            provider=os.getenv("AI_PROVIDER", DEFAULT_PROVIDER),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
            hf_token=os.getenv("HF_TOKEN") or None,
            trusted_domains=_split_domains(os.getenv("TRUSTED_DOMAINS")),
            admin_username=os.getenv("ADMIN_USERNAME", "admin"),
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            upstream_timeout=_env_float("UPSTREAM_TIMEOUT_SECONDS", 120.0),
            fetch_timeout=_env_float("FETCH_TIMEOUT_SECONDS", 30.0),
        )


@dataclass(frozen=True)
class RuntimeConfig:
    provider_name: str
    api_key: str | None = None
    model: str | None = None
    hf_token: str | None = None
    version: int = 0


@dataclass
class RuntimeConfigStore:
    """Holds the active runtime config; updates replace the snapshot wholesale."""

    _current: RuntimeConfig = field(repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RuntimeConfigStore":
        return cls(
            RuntimeConfig(
                provider_name=settings.provider,
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                hf_token=settings.hf_token,
            )
        )

    def snapshot(self) -> RuntimeConfig:
        return self._current

    def update(
        self,
        *,
        provider_name: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        hf_token: str | None = None,
    ) -> RuntimeConfig:
        current = self._current
        changes: dict[str, str] = {}
        if api_key:
            changes["api_key"] = api_key
            logger.info("API key updated via dashboard")
        if model:
            changes["model"] = model
            logger.info("Model updated via dashboard to: %s", model)
        if provider_name:
            changes["provider_name"] = provider_name.lower()
            logger.info("Provider updated via dashboard to: %s", changes["provider_name"])
        if hf_token:
            changes["hf_token"] = hf_token
            logger.info("Hugging Face token updated via dashboard")
        if not changes:
            return current
        self._current = replace(current, version=current.version + 1, **changes)
        return self._current


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
