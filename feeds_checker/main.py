"""
HTTP entry point of the feeds checker.
Serves `GET /feedinfo?url=<feed>` and keeps the requested feeds refreshed in the background.
"""

import logging
from contextlib import asynccontextmanager
import aiohttp
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

from feeds_checker.clients import ResourceFetcher
from feeds_checker.config import FEEDS_LIMIT, HOST, LOG_LEVEL, PORT, validate_config
from feeds_checker.managers.tracking_registry import TrackingRegistry
from feeds_checker.services.archive_counter import ArchiveCounter
from feeds_checker.services.feed_store import FeedStateStore
from feeds_checker.services.query_coordinator import LookupStatus, QueryCoordinator
from feeds_checker.services.stat_prober import StatProber
from feeds_checker.utils import health, init_logging

init_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

validate_config()

STATUS_CODES = {
    LookupStatus.OK: 200,
    LookupStatus.PENDING: 202,
    LookupStatus.NOT_FOUND: 404,
    LookupStatus.CAPACITY_EXCEEDED: 402,
    LookupStatus.STALE: 417,
}


def build_coordinator(fetcher: ResourceFetcher) -> QueryCoordinator:
    prober = StatProber(fetcher)
    store = FeedStateStore(prober, ArchiveCounter(fetcher))
    registry = TrackingRegistry(store, prober)
    return QueryCoordinator(registry, store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    session = aiohttp.ClientSession()
    app.state.coordinator = build_coordinator(ResourceFetcher(session))

    yield

    # Shutdown
    await app.state.coordinator.registry.shutdown()
    await session.close()


def create_app() -> FastAPI:
    app = FastAPI(lifespan=lifespan)

    @app.get("/feedinfo")
    async def feed_info(request: Request):
        urls = request.query_params.getlist("url")
        if not urls:
            return Response(status_code=400)
        url = urls[0]
        if url == "":
            logger.info("Empty feed url - refuse serving")
            return Response(status_code=400)

        coordinator: QueryCoordinator = request.app.state.coordinator
        result = await coordinator.lookup(url)

        status_code = STATUS_CODES[result.status]
        if not result.body:
            return Response(status_code=status_code)
        return Response(result.body, status_code=status_code, media_type="text/plain")

    @app.get("/health")
    async def health_check(request: Request):
        coordinator: QueryCoordinator = request.app.state.coordinator
        return {
            "status": "ok",
            "tracked_feeds": len(coordinator.registry),
            "feeds_limit": coordinator.registry.limit,
            "last_fetch_ok": health.last_fetch_ok,
        }

    return app


app = create_app()


def run():
    logger.info(f"Listening on {HOST}:{PORT} (feeds limit {FEEDS_LIMIT})")
    uvicorn.run(app, host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    run()
