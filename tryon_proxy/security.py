"""Allowlist check for product image URLs fetched on behalf of callers."""

import logging
from collections.abc import Iterable
from urllib.parse import urlsplit

from .errors import UntrustedURLError

DEFAULT_TRUSTED_DOMAINS: tuple[str, ...] = (
    "framerusercontent.com",
    "cdn.shopify.com",
    "shopify.com",
    "images.unsplash.com",
)
ALLOWED_SCHEMES = ("http", "https")

logger = logging.getLogger(__name__)


def trusted_domains(extra: Iterable[str] = ()) -> tuple[str, ...]:
    domains: list[str] = []
    for domain in (*DEFAULT_TRUSTED_DOMAINS, *extra):
        cleaned = domain.strip().lower().strip(".")
        if cleaned and cleaned not in domains:
            domains.append(cleaned)
    return tuple(domains)


def is_trusted_host(hostname: str, domains: Iterable[str]) -> bool:
    # Match whole labels only: "evilshopify.com" must not pass for "shopify.com".
    host = hostname.lower().rstrip(".")
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def validate_product_url(url: str, extra_domains: Iterable[str] = ()) -> str:
    """Return the URL unchanged if it may be fetched, else raise UntrustedURLError."""
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError as exc:
        raise UntrustedURLError(f"Unparsable URL: {exc}") from exc

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise UntrustedURLError(f"Invalid protocol: {parts.scheme or '<none>'}")
    if not hostname:
        raise UntrustedURLError("URL has no hostname")
    if not is_trusted_host(hostname, trusted_domains(extra_domains)):
        raise UntrustedURLError(f"Domain not trusted: {hostname}")
    return url.strip()
