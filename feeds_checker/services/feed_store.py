import dataclasses
import time
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Callable, Dict, List, Optional

from feeds_checker.clients import FetchError
from feeds_checker.services.archive_counter import ArchiveCounter, ArchiveDecodeError
from feeds_checker.services.stat_prober import StatProber

logger = getLogger(__name__)


@dataclass(frozen=True)
class FeedState:
    """
    Last known observation of a feed. Instances are never mutated: every write
    publishes a new value, so size marker, raw stat and count stay consistent.
    """

    size_marker: str
    raw_stat: bytes
    vacancy_count: int
    failing_since: Optional[float] = None

    def failing_longer_than(self, window: float, now: float) -> bool:
        return self.failing_since is not None and now - self.failing_since > window


class RefreshOutcome(Enum):
    SUCCESS = "success"
    UNREACHABLE = "unreachable"
    DECODE_ERROR = "decode_error"


class FeedStateStore:
    def __init__(
        self,
        prober: StatProber,
        counter: ArchiveCounter,
        clock: Callable[[], float] = time.time,
    ):
        self.prober = prober
        self.counter = counter
        self.clock = clock
        self._states: Dict[str, FeedState] = {}

    def get(self, url: str) -> Optional[FeedState]:
        return self._states.get(url)

    def urls(self) -> List[str]:
        return list(self._states)

    def discard(self, url: str) -> None:
        self._states.pop(url, None)

    def clear(self) -> None:
        self._states.clear()

    async def refresh_if_changed(self, url: str) -> RefreshOutcome:
        """
        Probe the feed and recount its archive only if the size marker changed.
        The stored state is either replaced as a whole or left untouched.
        """
        probe = await self.prober.probe(url)
        if probe is None:
            logger.warning(f"Error getting feed {url} size - skip info update")
            return RefreshOutcome.UNREACHABLE

        current = self._states.get(url)
        if current is not None and current.size_marker == probe.size_marker:
            if current.failing_since is not None:
                self._states[url] = dataclasses.replace(current, failing_since=None)
            return RefreshOutcome.SUCCESS

        logger.info(f"Counting vacancies for {url}")
        try:
            vacancy_count = await self.counter.count(url)
        except (FetchError, ArchiveDecodeError) as e:
            logger.error(f"Error counting vacancies for {url}: {e}")
            return RefreshOutcome.DECODE_ERROR

        self._states[url] = FeedState(
            size_marker=probe.size_marker,
            raw_stat=probe.raw_stat,
            vacancy_count=vacancy_count,
        )
        logger.info(f"Counted {vacancy_count} vacancies for {url}")
        return RefreshOutcome.SUCCESS

    def mark_failing(self, url: str) -> None:
        """Record the first of a run of failed refreshes. No-op without prior state."""
        current = self._states.get(url)
        if current is not None and current.failing_since is None:
            self._states[url] = dataclasses.replace(current, failing_since=self.clock())
