"""Process bootstrap: concrete collaborators wired into one gateway per platform."""

from __future__ import annotations

from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from data_collection.platforms import fetcher_for

from .config import Settings
from .pipeline import RULES, DiscoveryGateway, DiscoveryPipeline
from .schemas import Platform
from .services.ai import OpenAINicheDetector, OpenAISimilarityScorer
from .services.stores import SqlCacheStore, SqlRateLimitStore


def build_gateways(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> Dict[Platform, DiscoveryGateway]:
    """Construct one gateway per platform around the concrete collaborators.

    The scorer, niche detector and request log are shared; fetchers and
    cache stores are per platform.  Without an OpenAI key niche detection
    uses biography keywords only.
    """
    scorer = OpenAISimilarityScorer(settings.openai_api_key, settings.openai_model)
    niche_detector = (
        OpenAINicheDetector(settings.openai_api_key, settings.openai_model)
        if settings.openai_api_key else None
    )
    rate_limits = SqlRateLimitStore(session_factory)
    gateways: Dict[Platform, DiscoveryGateway] = {}
    for platform, rules in RULES.items():
        fetcher = fetcher_for(
            platform,
            apify_token=settings.apify_api_token,
            youtube_api_key=settings.youtube_api_key,
        )
        pipeline = DiscoveryPipeline(rules, fetcher, scorer, niche_detector, settings)
        gateways[platform] = DiscoveryGateway(
            pipeline, SqlCacheStore(session_factory, platform), rate_limits, settings
        )
    return gateways
