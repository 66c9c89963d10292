import base64
import re

import httpx

from .errors import ProductImageError
from .models import ImagePayload

DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def strip_data_url(image_b64: str) -> str:
    return DATA_URL_PREFIX.sub("", image_b64, count=1)


def decode_image(image_b64: str) -> bytes:
    return base64.b64decode(strip_data_url(image_b64))


def encode_image(content: bytes) -> str:
    return base64.b64encode(content).decode("utf-8")


def _mime_from_response(response: httpx.Response, default: str) -> str:
    content_type = response.headers.get("content-type", "")
    mime = content_type.split(";", 1)[0].strip()
    return mime or default


async def fetch_image(
    url: str,
    timeout: float = 30.0,
    default_mime: str = "image/jpeg",
    label: str = "product image",
) -> ImagePayload:
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        raise ProductImageError(f"Failed to fetch {label}: {exc}") from exc

    # Redirects are not followed, so a 3xx cannot lead off the allowlist.
    if not response.is_success:
        raise ProductImageError(f"Failed to fetch {label}: {response.reason_phrase or response.status_code}")
    if not response.content:
        raise ProductImageError(f"Failed to fetch {label}: empty response body")

    return ImagePayload(
        data=encode_image(response.content),
        mimeType=_mime_from_response(response, default_mime),
    )
