"""
FastAPI application entry point for the Good Vibes proxy.

Builds the caches and services, ties their lifetime to the application
lifespan and registers routes. Business logic lives in the cache and
service modules.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .avatar_cache import AvatarLookupCache
from .config_loader import Config, config
from .good_vibes_service import GoodVibesService
from .refresh_cache import DatasetRefreshCache
from .routes import router
from .statistics_service import StatisticsService
from .upstream_client import UpstreamClient

# Configure logging for the application
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    app_config: Config | None = None,
    client: UpstreamClient | None = None,
    *,
    start_refresh: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_config: Configuration to use instead of the global config
        client: Upstream client; one is created from app_config when omitted
        start_refresh: Whether the lifespan starts the background refresh loop
    """
    app_config = app_config or config

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        """
        Own the caches for the lifetime of the app.

        The first refresh cycle starts in the background so startup does
        not wait on the upstream listing.
        """
        upstream = client or UpstreamClient(app_config)
        avatar_cache = AvatarLookupCache(
            upstream,
            ttl_seconds=app_config.avatar_ttl,
            max_entries=app_config.avatar_max_entries,
            max_concurrency=app_config.avatar_max_concurrency,
            max_attempts=app_config.avatar_max_attempts,
            base_delay=app_config.avatar_base_delay,
        )
        dataset_cache = DatasetRefreshCache(
            upstream,
            interval_seconds=app_config.dataset_refresh_interval,
            page_limit=app_config.dataset_page_limit,
            max_pages=app_config.dataset_max_pages,
        )
        app.state.avatar_cache = avatar_cache
        app.state.dataset_cache = dataset_cache
        app.state.good_vibes_service = GoodVibesService(upstream, avatar_cache)
        app.state.statistics_service = StatisticsService(dataset_cache)

        logger.info("Starting Good Vibes proxy")
        logger.info(f"Officevibe API: {app_config.officevibe_api_url}")
        if not app_config.subscription_key:
            logger.warning("No subscription key configured; upstream calls will be rejected")
        if start_refresh:
            dataset_cache.start()
        try:
            yield
        finally:
            logger.info("Shutting down Good Vibes proxy")
            await dataset_cache.stop()
            if client is None:
                await upstream.close()

    app = FastAPI(
        title="Good Vibes Proxy",
        version="1.0.0",
        description="Officevibe Good Vibes with cached avatars and dataset statistics",
        lifespan=app_lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.server_host,
        port=config.server_port,
        log_level="info",
    )
