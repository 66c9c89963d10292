import asyncio
import html
import logging
import secrets
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .config import RuntimeConfig, RuntimeConfigStore, Settings, configure_logging
from .errors import ErrorKind, TryOnError, UnknownProviderError, UntrustedURLError
from .images import fetch_image
from .models import AdminConfigRequest, GenerationResult, ImagePayload, TryOnRequest
from .providers import ProviderConfig, TryOnProvider, get_provider, parse_provider_name
from .security import validate_product_url

ProviderFactory = Callable[[str, ProviderConfig], TryOnProvider]

STATIC_DIR = Path(__file__).with_name("static")

TEST_USER_IMAGE_URL = "https://images.unsplash.com/photo-1534528741775-53994a69daeb?w=400&q=80"
TEST_PRODUCT_IMAGE_URL = "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=400&q=80"

ADMIN_REALM = 'Basic realm="Admin Dashboard"'

logger = logging.getLogger(__name__)
basic_auth = HTTPBasic(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_config_store(request: Request) -> RuntimeConfigStore:
    return request.app.state.config_store


def provider_factory() -> ProviderFactory:
    return get_provider


def require_admin(
    credentials: HTTPBasicCredentials | None = Depends(basic_auth),
    settings: Settings = Depends(get_settings),
) -> str:
    authorized = (
        credentials is not None
        and settings.admin_password is not None
        and secrets.compare_digest(credentials.username.encode(), settings.admin_username.encode())
        and secrets.compare_digest(credentials.password.encode(), settings.admin_password.encode())
    )
    if not authorized:
        raise HTTPException(
            status_code=401,
            detail="Authentication required.",
            headers={"WWW-Authenticate": ADMIN_REALM},
        )
    return credentials.username


def _build_provider(factory: ProviderFactory, snapshot: RuntimeConfig, settings: Settings) -> TryOnProvider:
    return factory(
        snapshot.provider_name,
        ProviderConfig(
            api_key=snapshot.api_key,
            model=snapshot.model,
            hf_token=snapshot.hf_token,
            timeout=settings.upstream_timeout,
            fetch_timeout=settings.fetch_timeout,
        ),
    )


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _handle_tryon_error(_: Request, exc: TryOnError) -> JSONResponse:
    if isinstance(exc, UntrustedURLError):
        logger.warning("Blocked SSRF attempt: %s", exc.message)
        return _error_response(exc.status_code, exc.public_message)
    if exc.kind is ErrorKind.QUOTA_EXCEEDED:
        logger.warning("Upstream quota exceeded: %s", exc.message)
    else:
        logger.error("Request failed (%s): %s", exc.kind.value, exc.message)
    return _error_response(exc.status_code, exc.message)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Rejected malformed body on %s: %s", request.url.path, exc.errors())
    return _error_response(400, "Invalid request body")


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Server error on %s: %r", request.url.path, exc)
    return _error_response(500, "Internal server error")


admin_api = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


@admin_api.post("/config")
async def update_config(
    payload: AdminConfigRequest,
    store: RuntimeConfigStore = Depends(get_config_store),
) -> dict[str, Any]:
    provider_name = None
    if payload.provider:
        try:
            provider_name = parse_provider_name(payload.provider).value
        except UnknownProviderError as exc:
            raise UnknownProviderError(exc.message, ErrorKind.INVALID_INPUT) from exc

    snapshot = store.update(
        provider_name=provider_name,
        api_key=payload.api_key,
        model=payload.model,
        hf_token=payload.hf_token,
    )
    return {
        "success": True,
        "message": "Configuration updated.",
        "currentProvider": snapshot.provider_name,
        "currentModel": snapshot.model,
    }


@admin_api.post("/validate-key")
async def validate_key(
    settings: Settings = Depends(get_settings),
    store: RuntimeConfigStore = Depends(get_config_store),
    factory: ProviderFactory = Depends(provider_factory),
) -> dict[str, Any]:
    snapshot = store.snapshot()
    provider = _build_provider(factory, snapshot, settings)
    result = await provider.validate()
    return {
        **result.model_dump(exclude_none=True),
        "currentProvider": snapshot.provider_name,
        "currentModel": snapshot.model,
        "envModel": settings.gemini_model,
    }


@admin_api.post("/test-generation")
async def test_generation(
    settings: Settings = Depends(get_settings),
    store: RuntimeConfigStore = Depends(get_config_store),
    factory: ProviderFactory = Depends(provider_factory),
) -> GenerationResult:
    logger.info("Starting admin test generation")
    snapshot = store.snapshot()
    user_image, product_image = await asyncio.gather(
        fetch_image(TEST_USER_IMAGE_URL, settings.fetch_timeout, label="test images"),
        fetch_image(TEST_PRODUCT_IMAGE_URL, settings.fetch_timeout, label="test images"),
    )
    provider = _build_provider(factory, snapshot, settings)
    return await provider.generate_try_on(
        ImagePayload(data=user_image.data, mimeType="image/jpeg"),
        ImagePayload(data=product_image.data, mimeType="image/jpeg"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Try-on proxy ready on port %s with provider %s", settings.port, settings.provider)
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    if settings is None:
        load_dotenv()
        settings = Settings.from_env()
    configure_logging(settings.log_level)
    if settings.admin_password is None:
        logger.warning("ADMIN_PASSWORD is not set; admin routes will reject every request")

    app = FastAPI(title="Try-On Proxy", lifespan=lifespan)
    app.state.settings = settings
    app.state.config_store = RuntimeConfigStore.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.max_body_size:
            logger.warning("Rejected %s byte body on %s", content_length, request.url.path)
            return _error_response(413, "Request body too large")
        return await call_next(request)

    app.add_exception_handler(TryOnError, _handle_tryon_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    @app.get("/", response_class=HTMLResponse)
    async def root(store: RuntimeConfigStore = Depends(get_config_store)) -> HTMLResponse:
        provider_name = html.escape(store.snapshot().provider_name)
        return HTMLResponse(
            '<div style="font-family: sans-serif; padding: 20px;">'
            "<h1>Try-On API is running</h1>"
            '<p>Status: <strong style="color: green;">OK</strong></p>'
            f"<p>Provider: <strong>{provider_name}</strong></p>"
            '<p><a href="/admin">Open Admin Dashboard</a></p>'
            "</div>"
        )

    @app.get("/health")
    async def health(store: RuntimeConfigStore = Depends(get_config_store)) -> dict[str, Any]:
        snapshot = store.snapshot()
        return {"ok": True, "provider": snapshot.provider_name, "configVersion": snapshot.version}

    @app.get("/admin", dependencies=[Depends(require_admin)])
    async def admin_dashboard() -> FileResponse:
        return FileResponse(STATIC_DIR / "dashboard.html")

    @app.post("/api/generate-tryon")
    async def generate_tryon(
        payload: TryOnRequest,
        settings: Settings = Depends(get_settings),
        store: RuntimeConfigStore = Depends(get_config_store),
        factory: ProviderFactory = Depends(provider_factory),
    ) -> GenerationResult:
        snapshot = store.snapshot()
        if payload.user_image is None or not payload.product_image_url:
            raise TryOnError("Missing userImage or productImageUrl", ErrorKind.INVALID_INPUT)

        product_url = validate_product_url(payload.product_image_url, settings.trusted_domains)
        logger.info("Processing try-on for product: %s", product_url)

        product_image = await fetch_image(product_url, settings.fetch_timeout)
        provider = _build_provider(factory, snapshot, settings)
        result = await provider.generate_try_on(payload.user_image, product_image)
        logger.info("Generation successful via %s", snapshot.provider_name)
        return result

    app.include_router(admin_api)
    return app
