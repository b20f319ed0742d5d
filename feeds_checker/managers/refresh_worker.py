import asyncio
from enum import Enum
from logging import getLogger
from typing import Callable

from feeds_checker.config import REFRESH_INTERVAL
from feeds_checker.services.feed_store import FeedStateStore, RefreshOutcome

logger = getLogger(__name__)


class WorkerState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    TERMINATED = "terminated"


class RefreshWorker:
    """
    Background refresher for a single feed.

    Refreshes once right away, then once per interval. After every attempt it
    asks `release_if_idle` whether nobody has looked at the feed for too long;
    the callable drops the feed's tracking entry and state and returns True,
    and the worker then exits for good.
    """

    def __init__(
        self,
        url: str,
        store: FeedStateStore,
        release_if_idle: Callable[[], bool],
        interval: float = REFRESH_INTERVAL,
    ):
        self.url = url
        self.store = store
        self.release_if_idle = release_if_idle
        self.interval = interval
        self.state = WorkerState.STARTING
        self.ready = asyncio.Event()

    async def run(self) -> None:
        try:
            while True:
                await self.refresh()
                if self.state is WorkerState.STARTING:
                    self.state = WorkerState.RUNNING
                    self.ready.set()

                if self.release_if_idle():
                    logger.info(
                        f"Info about {self.url} has not been requested recently - cancel monitoring"
                    )
                    return

                await asyncio.sleep(self.interval)
        finally:
            self.state = WorkerState.TERMINATED
            self.ready.set()

    async def refresh(self) -> None:
        """One refresh attempt with failure bookkeeping."""
        try:
            outcome = await self.store.refresh_if_changed(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error refreshing {self.url}", exc_info=e)
            outcome = None

        if outcome is not RefreshOutcome.SUCCESS:
            self.store.mark_failing(self.url)
