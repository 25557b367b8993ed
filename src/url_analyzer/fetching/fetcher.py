"""Async web page fetcher."""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

from ..config import DEFAULT_USER_AGENT
from ..errors import FetchError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Body of a successful fetch."""

    url: str
    content: str
    status_code: int


class PageFetcher:
    """Fetch a single page over HTTP GET."""

    def __init__(
        self,
        timeout_seconds: int = 30,
        max_content_length: int = 1_000_000,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.max_content_length = max_content_length
        self.user_agent = user_agent

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a URL, raising FetchError on non-2xx or transport failure."""
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                headers = {"User-Agent": self.user_agent}
                async with session.get(
                    url, headers=headers, allow_redirects=True
                ) as response:
                    if not 200 <= response.status < 300:
                        raise FetchError(
                            f"HTTP {response.status}: {response.reason or ''}".rstrip(),
                            status_code=response.status,
                        )

                    content = await response.text(errors="replace")
                    if len(content) > self.max_content_length:
                        content = content[: self.max_content_length]

                    return FetchResult(
                        url=url,
                        content=content,
                        status_code=response.status,
                    )

        except asyncio.TimeoutError as e:
            raise FetchError("Request timed out") from e
        except aiohttp.ClientError as e:
            raise FetchError(str(e) or e.__class__.__name__) from e
