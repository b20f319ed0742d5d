import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Callable, Dict, List, Optional

from feeds_checker.config import FEEDS_LIMIT, IDLE_WINDOW, REFRESH_INTERVAL
from feeds_checker.managers.refresh_worker import RefreshWorker
from feeds_checker.services.feed_store import FeedStateStore
from feeds_checker.services.stat_prober import StatProber

logger = getLogger(__name__)


class Admission(Enum):
    ADMITTED = "admitted"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NOT_ALIVE = "not_alive"


@dataclass
class TrackingEntry:
    worker: RefreshWorker
    task: "asyncio.Task[None]"
    last_observed_at: float


class TrackingRegistry:
    """
    Capacity-bounded set of tracked feeds and supervisor of their workers.

    All bookkeeping happens on the event loop without a suspension point
    between a check and the write that depends on it, so the entries map
    never exceeds the limit and a feed never gets two workers.
    """

    def __init__(
        self,
        store: FeedStateStore,
        prober: StatProber,
        limit: int = FEEDS_LIMIT,
        refresh_interval: float = REFRESH_INTERVAL,
        idle_window: float = IDLE_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prober = prober
        self.limit = limit
        self.refresh_interval = refresh_interval
        self.idle_window = idle_window
        self.clock = clock
        self._entries: Dict[str, TrackingEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return url in self._entries

    def tracked_urls(self) -> List[str]:
        return list(self._entries)

    def worker(self, url: str) -> Optional[RefreshWorker]:
        entry = self._entries.get(url)
        return entry.worker if entry else None

    def last_observed_at(self, url: str) -> Optional[float]:
        entry = self._entries.get(url)
        return entry.last_observed_at if entry else None

    async def ensure_tracked(self, url: str) -> Admission:
        """
        Make sure a refresh worker runs for the feed and stamp it as observed.
        """
        if self._observe(url):
            return Admission.ADMITTED

        if not await self.prober.is_alive(url):
            logger.info(f"{url} isn't alive - refuse tracking")
            return Admission.NOT_ALIVE

        # another lookup may have admitted the feed while we were probing
        if self._observe(url):
            return Admission.ADMITTED

        if len(self._entries) >= self.limit:
            logger.warning(f"Feeds limit ({self.limit}) is exhausted - refuse tracking {url}")
            return Admission.CAPACITY_EXCEEDED

        self._start(url)
        return Admission.ADMITTED

    def _observe(self, url: str) -> bool:
        entry = self._entries.get(url)
        if entry is None:
            return False
        entry.last_observed_at = self.clock()
        return True

    def _start(self, url: str) -> None:
        worker = RefreshWorker(
            url,
            self.store,
            release_if_idle=lambda: self._release_if_idle(url, worker),
            interval=self.refresh_interval,
        )
        task = asyncio.create_task(worker.run(), name=f"refresh-{url}")
        self._entries[url] = TrackingEntry(worker, task, self.clock())
        task.add_done_callback(lambda t: self._on_worker_done(url, t))
        logger.info(f"Started monitoring {url} ({len(self._entries)}/{self.limit})")

    def _release_if_idle(self, url: str, worker: RefreshWorker) -> bool:
        entry = self._entries.get(url)
        if entry is None or entry.worker is not worker:
            return True
        if self.clock() - entry.last_observed_at <= self.idle_window:
            return False
        self._release(url)
        return True

    def _release(self, url: str) -> None:
        del self._entries[url]
        self.store.discard(url)

    def _on_worker_done(self, url: str, task: "asyncio.Task[None]") -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Refresh worker for {url} crashed", exc_info=task.exception())

        entry = self._entries.get(url)
        if entry is not None and entry.task is task:
            self._release(url)

    async def shutdown(self) -> None:
        """Cancel every worker and wait for all of them to finish."""
        tasks = [entry.task for entry in self._entries.values()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._entries.clear()
        self.store.clear()
        logger.info(f"Stopped {len(tasks)} refresh worker(s)")
