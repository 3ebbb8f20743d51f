"""
tzshare/share.py

Share link construction and best-effort link shortening.

The shortener talks to a TinyURL-style "create" endpoint: a GET with the
long URL as the "url" parameter answers with the short URL as plain text.
Shortening is optional; any failure falls back to the long link.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from . import codec
from .errors import DecodeError
from .event import EventDescriptor

logger = logging.getLogger(__name__)

DEFAULT_SHORTENER_URL = "https://tinyurl.com/api-create.php"
SHARE_PATH = "/share"
TOKEN_PARAM = "data"


@dataclass(frozen=True)
class ShareLink:
    """
    A generated share link.

    Attributes:
        token: The encoded event.
        long_url: Link carrying the token in its query string.
        url: Link to hand out (short URL when shortening worked).
        shortened: Whether url is a shortened link.
    """

    token: str
    long_url: str
    url: str
    shortened: bool = False


def build_share_url(base_url: str, token: str) -> str:
    """
    Build the share page URL for a token.

    Args:
        base_url: Site origin, e.g. "https://tzshare.example".
        token: Share token.

    Returns:
        "<base_url>/share?data=<token>".
    """
    return f"{base_url.rstrip('/')}{SHARE_PATH}?{urlencode({TOKEN_PARAM: token})}"


def extract_token(url_or_token: str) -> str:
    """
    Get the share token out of a share URL.

    Bare tokens are returned unchanged.

    Raises:
        DecodeError: If a URL has no "data" parameter.
    """
    text = url_or_token.strip()
    if "://" not in text and "?" not in text:
        return text

    query = urlsplit(text).query
    values = parse_qs(query).get(TOKEN_PARAM)
    if not values or not values[0]:
        raise DecodeError(f"Share URL has no '{TOKEN_PARAM}' parameter")
    # Older links carry standard base64 unescaped, so "+" arrives as a space
    return values[0].replace(" ", "+")


class LinkShortener:
    """
    Client for a URL shortening service.

    Uses a lazily created httpx.AsyncClient. Call close() (or use as an
    async context manager) to release it.

    Args:
        api_url: Shortener "create" endpoint.
        timeout: HTTP request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, api_url: str = DEFAULT_SHORTENER_URL, timeout: float = DEFAULT_TIMEOUT):
        self.api_url = api_url
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(f"{__name__}.LinkShortener")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def shorten(self, long_url: str) -> str:
        """
        Shorten a URL.

        Args:
            long_url: URL to shorten.

        Returns:
            The short URL, or long_url unchanged if the service fails.
        """
        try:
            client = await self._get_client()
            response = await client.get(self.api_url, params={"url": long_url})

            if response.status_code != 200:
                self.logger.warning(
                    f"Shortener returned status {response.status_code}, using long link"
                )
                return long_url

            short_url = response.text.strip()
            if not short_url.startswith(("http://", "https://")):
                self.logger.warning(f"Shortener returned unexpected body: {short_url[:80]!r}")
                return long_url

            self.logger.debug(f"Shortened {long_url} -> {short_url}")
            return short_url
        except Exception as e:
            self.logger.warning(f"Shortener request failed, using long link: {e}")
            return long_url

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LinkShortener":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def create_share_link(
    descriptor: EventDescriptor,
    base_url: str,
    shortener: Optional[LinkShortener] = None,
) -> ShareLink:
    """
    Encode an event and build its share link.

    Args:
        descriptor: Event to share. Business rules must already hold.
        base_url: Site origin for the share page.
        shortener: Optional shortener; without one the long link is used.

    Returns:
        ShareLink.
    """
    token = codec.encode(descriptor)
    long_url = build_share_url(base_url, token)

    url = long_url
    if shortener is not None:
        url = await shortener.shorten(long_url)

    logger.info(f"Share link created for {descriptor.title!r}")
    return ShareLink(token=token, long_url=long_url, url=url, shortened=url != long_url)
