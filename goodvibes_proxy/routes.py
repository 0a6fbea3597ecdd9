"""
FastAPI route handlers for the Good Vibes proxy.

Handlers stay thin and delegate to the services stored on app.state by the
application lifespan, so tests can build an app around stub clients.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from .avatar_cache import AvatarLookupCache
from .good_vibes_service import GoodVibesService
from .models import GoodVibesStatistics, HealthResponse
from .refresh_cache import DatasetRefreshCache
from .statistics_service import StatisticsService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_good_vibes_service(request: Request) -> GoodVibesService:
    return request.app.state.good_vibes_service


def get_statistics_service(request: Request) -> StatisticsService:
    return request.app.state.statistics_service


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Reports whether the full-dataset cache has completed a refresh and how
    many avatar lookups are currently cached.
    """
    dataset: DatasetRefreshCache = request.app.state.dataset_cache
    avatars: AvatarLookupCache = request.app.state.avatar_cache
    return HealthResponse(
        status="ok",
        message="Server is running",
        datasetReady=dataset.is_ready,
        cachedAvatars=avatars.cached_count,
    )


@router.get("/api/good-vibes")
async def list_good_vibes(
    is_public: bool | None = Query(default=None, alias="isPublic"),
    service: GoodVibesService = Depends(get_good_vibes_service),
) -> Any:
    """
    Good Vibes listing with avatar URLs added to senders and recipients.

    Raises:
        HTTPException: Mirroring the upstream status on upstream errors
    """
    return await service.list_good_vibes(is_public)


@router.get("/api/good-vibes/statistics", response_model=GoodVibesStatistics)
async def good_vibes_statistics(
    top: int = Query(default=10, ge=1, le=100),
    service: StatisticsService = Depends(get_statistics_service),
) -> GoodVibesStatistics:
    """
    Statistics over every public Good Vibe.

    Served from the in-memory snapshot; ready is false until the first
    refresh has completed.
    """
    statistics = await service.get_statistics(top_n=top)
    if not statistics.ready:
        logger.debug("Statistics requested before the first dataset refresh completed")
    return statistics


@router.get("/api/good-vibes/collections")
async def good_vibes_collections(
    service: GoodVibesService = Depends(get_good_vibes_service),
) -> Any:
    """Good Vibes collections (custom prompts), passed through unchanged."""
    return await service.get_collections()


@router.get("/api/good-vibes/{good_vibe_id}")
async def get_good_vibe(
    good_vibe_id: str,
    service: GoodVibesService = Depends(get_good_vibes_service),
) -> Any:
    """Single Good Vibe with avatars on sender, recipients and replies."""
    return await service.get_good_vibe(good_vibe_id)


@router.get("/api/users/{user_id}")
async def get_user(
    user_id: str,
    service: GoodVibesService = Depends(get_good_vibes_service),
) -> Any:
    """Workleap user information, including avatar image URLs."""
    return await service.get_user(user_id)
