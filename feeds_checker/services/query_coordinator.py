import time
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Callable

from feeds_checker.config import FAILURE_WINDOW
from feeds_checker.managers.tracking_registry import Admission, TrackingRegistry
from feeds_checker.services.feed_store import FeedState, FeedStateStore

logger = getLogger(__name__)

STALE_MESSAGE = b"information could not be obtained for more than 6 hours"


class LookupStatus(Enum):
    OK = "ok"
    PENDING = "pending"
    NOT_FOUND = "not_found"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    STALE = "stale"


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    body: bytes = b""


def format_feed_info(state: FeedState) -> bytes:
    # the raw stat is passed through byte for byte
    return state.raw_stat + f", vacanciesCount: {state.vacancy_count}".encode()


class QueryCoordinator:
    """
    Request-facing entry point: admits feeds for tracking and answers with
    whatever the store currently knows about them.
    """

    def __init__(
        self,
        registry: TrackingRegistry,
        store: FeedStateStore,
        failure_window: float = FAILURE_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.store = store
        self.failure_window = failure_window
        self.clock = clock

    async def lookup(self, url: str) -> LookupResult:
        admission = await self.registry.ensure_tracked(url)
        if admission is Admission.NOT_ALIVE:
            return LookupResult(LookupStatus.NOT_FOUND)
        if admission is Admission.CAPACITY_EXCEEDED:
            return LookupResult(LookupStatus.CAPACITY_EXCEEDED, self._capacity_listing())

        state = self.store.get(url)
        if state is None:
            return LookupResult(LookupStatus.PENDING)

        if state.failing_longer_than(self.failure_window, self.clock()):
            logger.warning(f"Info about {url} could not be updated for too long - return error")
            # the stale notice precedes the last known info in the same body
            return LookupResult(LookupStatus.STALE, STALE_MESSAGE + format_feed_info(state))

        return LookupResult(LookupStatus.OK, format_feed_info(state))

    def _capacity_listing(self) -> bytes:
        lines = [f"Feeds limit ({self.registry.limit}) is exhausted:\n"]
        lines.extend(f"{url}\n" for url in self.registry.tracked_urls())
        return "".join(lines).encode()
