import asyncio
import logging
import mimetypes
import tempfile
from typing import Any

import httpx
from gradio_client import Client, handle_file

from ..errors import ErrorKind, ProviderError
from ..images import decode_image, encode_image
from ..models import GenerationResult, ImagePayload, ValidationResult, build_generation_result
from .base import ProviderConfig

SPACE_ID = "yisol/IDM-VTON"
SPACE_MODEL_LABEL = "IDM-VTON (Public Space)"
TRYON_API_NAME = "/tryon"

GARMENT_DESCRIPTION = "clothing"
AUTO_MASK = True
AUTO_CROP = True
DENOISE_STEPS = 30
SEED = 42

BUSY_MESSAGE = "Timeout: The public AI server is too busy. Please try again in 1 minute."

logger = logging.getLogger(__name__)


def _suffix_for(mime_type: str) -> str:
    return mimetypes.guess_extension(mime_type) or ".png"


def _write_temp_image(image: ImagePayload, directory: str) -> str:
    with tempfile.NamedTemporaryFile(suffix=_suffix_for(image.mime_type), dir=directory, delete=False) as handle:
        handle.write(decode_image(image.data))
        return handle.name


def extract_image_url(result: Any) -> str | None:
    """Return the remote URL of the first output, or None.

    Only http(s) URLs are accepted. Local paths reported by the space are
    ignored so a response can never point the proxy at its own filesystem.
    """
    output = result[0] if isinstance(result, (list, tuple)) and result else result
    if isinstance(output, dict):
        url = output.get("url")
    elif isinstance(output, str):
        url = output
    else:
        url = getattr(output, "url", None)
    if isinstance(url, str) and url.startswith(("http://", "https://")):
        return url
    return None


def _is_busy_error(exc: BaseException) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return True
    message = str(exc).lower()
    return "timeout" in message or "504" in message


class HuggingFaceProvider:
    def __init__(self, config: ProviderConfig, space_id: str = SPACE_ID) -> None:
        self.config = config
        self.space_id = space_id

    @property
    def token(self) -> str | None:
        return self.config.hf_token or None

    def _auth_headers(self) -> dict[str, str]:
        token = self.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _connect(self) -> Client:
        logger.info("Connecting to Hugging Face Space: %s", self.space_id)
        # Some inference backends only honor the explicit header, so send both.
        return Client(
            self.space_id,
            token=self.token,
            verbose=False,
            headers=self._auth_headers() or None,
            download_files=False,
        )

    def _predict(self, user_image: ImagePayload, product_image: ImagePayload) -> Any:
        client = self._connect()
        try:
            with tempfile.TemporaryDirectory(prefix="tryon-") as workdir:
                user_path = _write_temp_image(user_image, workdir)
                product_path = _write_temp_image(product_image, workdir)
                logger.info("Sending request to %s (this usually takes 45-80 seconds)", self.space_id)
                return client.predict(
                    {"background": handle_file(user_path), "layers": [], "composite": None},
                    handle_file(product_path),
                    GARMENT_DESCRIPTION,
                    AUTO_MASK,
                    AUTO_CROP,
                    DENOISE_STEPS,
                    SEED,
                    api_name=TRYON_API_NAME,
                )
        finally:
            client.close()

    def _check_connection(self) -> None:
        self._connect().close()

    async def _download(self, url: str) -> tuple[bytes, str]:
        async with httpx.AsyncClient(timeout=self.config.fetch_timeout) as client:
            response = await client.get(url, headers=self._auth_headers())
        response.raise_for_status()
        mime = response.headers.get("content-type", "").split(";", 1)[0].strip()
        return response.content, mime if mime.startswith("image/") else "image/png"

    async def generate_try_on(self, user_image: ImagePayload, product_image: ImagePayload) -> GenerationResult:
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._predict, user_image, product_image),
                timeout=self.config.timeout,
            )
            image_url = extract_image_url(result)
            if not image_url:
                raise ProviderError(
                    "HF Error: Hugging Face returned success but no image URL found.", ErrorKind.EMPTY_OUTPUT
                )
            logger.info("Image generated successfully: %s", image_url)

            content, mime_type = await self._download(image_url)
            return build_generation_result(encode_image(content), mime_type)
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("HuggingFace provider error: %r", exc)
            if _is_busy_error(exc):
                raise ProviderError(BUSY_MESSAGE, ErrorKind.UPSTREAM_BUSY) from exc
            raise ProviderError(f"HF Error: {exc}") from exc

    async def validate(self) -> ValidationResult:
        try:
            await asyncio.wait_for(asyncio.to_thread(self._check_connection), timeout=self.config.fetch_timeout)
        except Exception as exc:
            return ValidationResult(valid=False, error=str(exc) or exc.__class__.__name__)
        return ValidationResult(valid=True, models=[SPACE_MODEL_LABEL])
