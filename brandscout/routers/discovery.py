"""Brand-partnership discovery endpoints.

``POST /discover/{platform}`` runs (or serves from cache) a discovery for a
seed handle on Instagram, TikTok or YouTube.  ``GET
/discover/{platform}/cache`` reports whether a live cached result exists for
a handle without running anything or counting against the rate limit.

Both endpoints require a bearer token; its subject is the requester that
the rate limit applies to.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..auth import get_requester_id
from ..errors import NotFound, RateLimitExceeded, UpstreamTransient
from ..pipeline.gateway import DiscoveryGateway
from ..schemas import (
    CacheStatus,
    DiscoveryData,
    DiscoveryMetadata,
    DiscoveryRequest,
    DiscoveryResponse,
    Platform,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discover", tags=["discovery"])


def get_gateway(platform: str, request: Request) -> DiscoveryGateway:
    """Return the gateway for ``platform`` or raise HTTP 404."""
    try:
        key = Platform(platform.lower())
    except ValueError:
        key = None
    gateway = request.app.state.gateways.get(key) if key else None
    if gateway is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unsupported platform: {platform}")
    return gateway


def clean_seed_handle(handle: str) -> str:
    seed = handle.strip().lstrip("@").strip()
    if not seed:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Handle is required")
    return seed


@router.post("/{platform}", response_model=DiscoveryResponse)
async def discover(
    body: DiscoveryRequest,
    gateway: DiscoveryGateway = Depends(get_gateway),
    requester_id: str = Depends(get_requester_id),
) -> DiscoveryResponse:
    """Find similar creators and the brands sponsoring them.

    Results are cached per handle for the configured TTL; a cached response
    has ``metadata.cached`` set.  Errors map to 404 (unknown handle), 429
    with ``Retry-After`` (rate limit) and 502 (the seed profile could not be
    fetched).
    """
    seed = clean_seed_handle(body.handle)
    try:
        result = await gateway.run_discovery(seed, requester_id)
    except RateLimitExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(exc.retry_after)},
        )
    except NotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{exc}. Try a different handle.",
        )
    except UpstreamTransient as exc:
        logger.error("Discovery for @%s failed upstream: %s", seed, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not reach the platform. Please try again later.",
        )

    return DiscoveryResponse(
        data=DiscoveryData(
            similar_creators=result.similar_creators,
            brand_opportunities=result.brand_opportunities,
            metadata=DiscoveryMetadata(
                processing_time_ms=result.processing_time_ms,
                cached=result.cached,
                candidate_source=result.candidate_source,
                niche=result.niche,
                timestamp=datetime.now(timezone.utc),
            ),
        )
    )


@router.get("/{platform}/cache", response_model=CacheStatus)
async def cache_status(
    handle: str = Query(..., min_length=1, max_length=100),
    gateway: DiscoveryGateway = Depends(get_gateway),
    requester_id: str = Depends(get_requester_id),
) -> CacheStatus:
    """Return the cached result for ``handle`` if it is still within its TTL."""
    entry = await gateway.peek_cache(clean_seed_handle(handle))
    if entry is None:
        return CacheStatus(cached=False)
    result, created_at = entry
    return CacheStatus(
        cached=True,
        cached_at=created_at,
        similar_creators=result.similar_creators,
        brand_opportunities=result.brand_opportunities,
    )
