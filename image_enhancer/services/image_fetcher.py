"""
Downloads source images for enhancement.

One GET per call with a hard total timeout and no retry. Callers decide
whether to fall back to the original image.
"""

import asyncio
from typing import Optional

import aiohttp

from image_enhancer.config.settings import EnhancerSettings, get_settings
from image_enhancer.services.exceptions import FetchError
from image_enhancer.setup_logging import get_logger

logger = get_logger(__name__)


class ImageFetcher:
    """Fetch image bytes over HTTP with aiohttp."""

    ACCEPT_HEADER = 'image/avif,image/webp,image/apng,image/*,*/*;q=0.8'
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[EnhancerSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session
        self._session_owner = False  # Track if we created the session

    async def __aenter__(self):
        """Async context manager entry."""
        self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if not self.session or self.session.closed:
            self.session = aiohttp.ClientSession(headers={
                'User-Agent': self.settings.user_agent,
                'Accept': self.ACCEPT_HEADER,
            })
            self._session_owner = True
        return self.session

    @staticmethod
    def _truncate_url(url: str) -> str:
        """Truncate data URLs for logging to avoid huge base64 strings."""
        if url.startswith('data:'):
            return url[:50] + '...[truncated]'
        return url[:100]

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> bytes:
        """
        Download an image.

        Args:
            url: HTTP(S) URL of the image
            timeout_ms: Total timeout; defaults to settings.fetch_timeout_ms

        Returns:
            Raw response body

        Raises:
            FetchError: timeout, non-2xx status, oversize body or transport error
        """
        timeout_ms = timeout_ms or self.settings.fetch_timeout_ms
        max_bytes = self.settings.max_image_size_mb * 1024 * 1024
        display_url = self._truncate_url(url)
        session = self._get_session()

        try:
            async with session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
                allow_redirects=True,
            ) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(url, f"HTTP {response.status} fetching image", status=response.status)

                if response.content_length is not None and response.content_length > max_bytes:
                    raise FetchError(
                        url,
                        f"Image too large ({response.content_length} bytes > {max_bytes})",
                        status=response.status,
                    )

                body = bytearray()
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    body.extend(chunk)
                    if len(body) > max_bytes:
                        raise FetchError(url, f"Image too large (> {max_bytes} bytes)", status=response.status)
                data = bytes(body)

        except FetchError:
            raise
        except asyncio.TimeoutError as e:
            logger.warning(f"Timeout fetching image after {timeout_ms}ms: {display_url}")
            raise FetchError(url, f"Timeout after {timeout_ms}ms", cause=e) from e
        except aiohttp.ClientError as e:
            logger.warning(f"Network error fetching image {display_url}: {e}")
            raise FetchError(url, f"Network error: {e}", cause=e) from e

        logger.debug(f"Fetched {len(data) // 1024}KB from {display_url}")
        return data

    async def close(self) -> None:
        """Close the session if this fetcher created it."""
        if self.session and self._session_owner and not self.session.closed:
            await self.session.close()
        if self._session_owner:
            self.session = None
            self._session_owner = False
