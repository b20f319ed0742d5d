import asyncio
import gzip
from collections import Counter
from typing import AsyncIterator, Dict, Union

import pytest

from feeds_checker.clients import FetchError
from feeds_checker.managers.tracking_registry import TrackingRegistry
from feeds_checker.services.archive_counter import ArchiveCounter
from feeds_checker.services.feed_store import FeedStateStore
from feeds_checker.services.query_coordinator import QueryCoordinator
from feeds_checker.services.stat_prober import StatProber

HOUR = 60 * 60


def make_archive(vacancies: int, extra: str = "") -> bytes:
    items = "".join(
        f"<vacancy id=\"{i}\"><title>Job {i}</title></vacancy>" for i in range(vacancies)
    )
    return gzip.compress(f"<?xml version=\"1.0\"?><source>{extra}{items}</source>".encode())


def make_stat(size: int) -> bytes:
    return f"file: vacancies.xml.gz, size:{size} bytes".encode()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """In-memory resource fetcher; a registered exception is raised instead of a body."""

    def __init__(self):
        self.responses: Dict[str, Union[bytes, Exception]] = {}
        self.calls: Counter = Counter()

    def serve_feed(self, url: str, size: int, vacancies: int) -> None:
        self.responses[f"{url}?stat"] = make_stat(size)
        self.responses[url] = make_archive(vacancies)

    def break_feed(self, url: str) -> None:
        self.responses[f"{url}?stat"] = FetchError(f"Got '503 Service Unavailable' from {url}")

    def archive_calls(self, url: str) -> int:
        return self.calls[url]

    def _response(self, url: str) -> bytes:
        self.calls[url] += 1
        response = self.responses.get(url)
        if response is None:
            raise FetchError(f"Got '404 Not Found' from {url}")
        if isinstance(response, Exception):
            raise response
        return response

    async def read(self, url: str) -> bytes:
        return self._response(url)

    def stream(self, url: str) -> AsyncIterator[bytes]:
        async def chunks():
            body = self._response(url)
            for start in range(0, len(body), 7):
                yield body[start:start + 7]

        return chunks()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def store(fetcher, clock) -> FeedStateStore:
    return FeedStateStore(StatProber(fetcher), ArchiveCounter(fetcher), clock=clock)


@pytest.fixture
async def registry(store, clock):
    registry = TrackingRegistry(
        store,
        store.prober,
        limit=32,
        refresh_interval=0.01,
        idle_window=6 * HOUR,
        clock=clock,
    )
    yield registry
    await registry.shutdown()


@pytest.fixture
def coordinator(registry, store, clock) -> QueryCoordinator:
    return QueryCoordinator(registry, store, failure_window=6 * HOUR, clock=clock)
