import asyncio
from logging import getLogger
from typing import AsyncIterator

from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout

from feeds_checker.config import ARCHIVE_TIMEOUT, STAT_TIMEOUT
from feeds_checker.utils import health

logger = getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class FetchError(Exception):
    """Transport failure: connection error, timeout or non-success status."""


def _check_status(url: str, resp: ClientResponse) -> None:
    if resp.status >= 300:
        raise FetchError(f"Got '{resp.status} {resp.reason}' from {url}")


async def fetch_bytes(session: ClientSession, url: str, timeout: float = STAT_TIMEOUT) -> bytes:
    """
    Fetch the whole body of a URL.
    :param session: The aiohttp ClientSession to use for the request.
    :param url: The URL to fetch.
    :return: The response body.
    :raises FetchError: If the request fails or the status is not a success.
    """
    try:
        async with session.get(url, timeout=ClientTimeout(total=timeout)) as resp:
            _check_status(url, resp)
            body = await resp.read()
            health.last_fetch_ok = True

            return body
    except (ClientError, asyncio.TimeoutError) as e:
        health.last_fetch_ok = False
        raise FetchError(f"Error fetching {url}: {e!r}") from e
    except FetchError:
        health.last_fetch_ok = False
        raise


async def iter_chunks(
    session: ClientSession, url: str, timeout: float = ARCHIVE_TIMEOUT
) -> AsyncIterator[bytes]:
    """
    Stream the body of a URL chunk by chunk.
    :raises FetchError: If the request fails or the status is not a success.
    """
    try:
        async with session.get(url, timeout=ClientTimeout(total=timeout)) as resp:
            _check_status(url, resp)
            async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                yield chunk
            health.last_fetch_ok = True
    except (ClientError, asyncio.TimeoutError) as e:
        health.last_fetch_ok = False
        raise FetchError(f"Error fetching {url}: {e!r}") from e
    except FetchError:
        health.last_fetch_ok = False
        raise


class ResourceFetcher:
    """
    Resource fetcher bound to a shared aiohttp session.
    """

    def __init__(self, session: ClientSession):
        self.session = session

    async def read(self, url: str) -> bytes:
        return await fetch_bytes(self.session, url)

    def stream(self, url: str) -> AsyncIterator[bytes]:
        return iter_chunks(self.session, url)
