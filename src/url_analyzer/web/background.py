"""Detached background work and callback delivery."""

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable

import aiohttp

logger = logging.getLogger(__name__)

CALLBACK_TIMEOUT = aiohttp.ClientTimeout(total=30)


def spawn_detached(job: Callable[[], Awaitable[Any]], name: str = "analysis") -> threading.Thread:
    """Run a coroutine factory on its own event loop in a daemon thread.

    The caller does not wait. Errors are logged, never propagated.
    """

    def runner() -> None:
        try:
            asyncio.run(job())
        except Exception:
            logger.exception(f"Background job {name} failed")

    thread = threading.Thread(target=runner, name=f"bg-{name}", daemon=True)
    thread.start()
    return thread


async def post_callback(callback_url: str, payload: dict) -> bool:
    """POST a JSON payload once. Returns False if delivery failed."""
    try:
        async with aiohttp.ClientSession(timeout=CALLBACK_TIMEOUT) as session:
            async with session.post(callback_url, json=payload) as response:
                if not 200 <= response.status < 300:
                    logger.warning(
                        f"Callback to {callback_url} returned HTTP {response.status}"
                    )
                    return False
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"Callback to {callback_url} failed: {e!r}")
        return False
    return True
