import base64

import pytest
from fastapi.testclient import TestClient

from tryon_proxy.config import Settings
from tryon_proxy.main import create_app, provider_factory
from tryon_proxy.models import ImagePayload, ValidationResult, build_generation_result

# Smallest JPEG header plus padding; providers never decode it locally.
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
    b"\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\nIDATx\x9cc\x00\x01\x00\x00\x05\x00\x01\r\n-\xb4"
    b"\x00\x00\x00\x00IEND\xaeB`\x82"
)
JPEG_B64 = base64.b64encode(JPEG_BYTES).decode()
PNG_B64 = base64.b64encode(PNG_BYTES).decode()

PRODUCT_URL = "https://images.unsplash.com/photo-xyz"
ADMIN_AUTH = ("admin", "s3cret")


class StubProvider:
    def __init__(self, result: dict) -> None:
        self.result = result
        self.calls: list[tuple[ImagePayload, ImagePayload]] = []

    async def generate_try_on(self, user_image: ImagePayload, product_image: ImagePayload) -> dict:
        self.calls.append((user_image, product_image))
        return self.result

    async def validate(self) -> ValidationResult:
        return ValidationResult(valid=True, models=["stub-model"])


class RecordingFactory:
    def __init__(self, result: dict) -> None:
        self.result = result
        self.calls: list[tuple] = []
        self.providers: list[StubProvider] = []

    def __call__(self, name, config):
        self.calls.append((name, config))
        provider = StubProvider(self.result)
        self.providers.append(provider)
        return provider


@pytest.fixture
def user_image() -> ImagePayload:
    return ImagePayload(data=JPEG_B64, mimeType="image/jpeg")


@pytest.fixture
def product_image() -> ImagePayload:
    return ImagePayload(data=PNG_B64, mimeType="image/png")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key",
        admin_username=ADMIN_AUTH[0],
        admin_password=ADMIN_AUTH[1],
        trusted_domains=("assets.example-cdn.com",),
        max_body_size=64 * 1024,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fixed_result() -> dict:
    return build_generation_result(PNG_B64, "image/png")


@pytest.fixture
def recording_factory(app, fixed_result):
    factory = RecordingFactory(fixed_result)
    app.dependency_overrides[provider_factory] = lambda: factory
    yield factory
    app.dependency_overrides.clear()
