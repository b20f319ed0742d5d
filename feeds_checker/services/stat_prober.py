import re
from dataclasses import dataclass
from logging import getLogger
from typing import Optional

from feeds_checker.clients import FetchError, ResourceFetcher

logger = getLogger(__name__)

SIZE_PATTERN = re.compile(rb"size:(\d+) bytes")


@dataclass(frozen=True)
class StatProbe:
    size_marker: str
    raw_stat: bytes


def stat_url(url: str) -> str:
    return f"{url}?stat"


def parse_size_marker(stat: bytes) -> Optional[str]:
    """Extract the digits of the first `size:<N> bytes` occurrence, or None."""
    match = SIZE_PATTERN.search(stat)
    if match is None:
        return None
    return match.group(1).decode("ascii")


class StatProber:
    """
    Reads a feed's stat sidecar. Used both as a liveness check and as the
    change-detection signal before recounting an archive.
    """

    def __init__(self, fetcher: ResourceFetcher):
        self.fetcher = fetcher

    async def probe(self, url: str) -> Optional[StatProbe]:
        """
        :param url: The feed URL (without the `?stat` suffix).
        :return: The size marker and raw stat payload, or None if unreachable.
        """
        target = stat_url(url)
        try:
            stat = await self.fetcher.read(target)
        except FetchError as e:
            logger.warning(f"Error fetching stat from {target}: {e}")
            return None

        size_marker = parse_size_marker(stat)
        if size_marker is None:
            logger.warning(f"No size marker in stat from {target}")
            return None

        return StatProbe(size_marker, stat)

    async def is_alive(self, url: str) -> bool:
        return await self.probe(url) is not None
