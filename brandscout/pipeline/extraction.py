"""Partnership extraction.

Reads each finalist's recent content and turns the sponsorship signals in it
into :class:`~brandscout.schemas.BrandMention` values.  Finalists are
processed ``extraction_batch_size`` at a time; a finalist whose content
cannot be fetched contributes no mentions.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..schemas import BrandMention, ContentItem, Profile
from .collaborators import ProfileFetcher
from .results import Ok, gather_in_batches, log_failures
from .rules import PlatformRules
from .signals import detect_signals, normalize_brand

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200


def engagement_of(item: ContentItem, rules: PlatformRules) -> int:
    if rules.engagement_from_views:
        return item.views
    return item.likes + item.comments


def mentions_from_content(item: ContentItem, creator: Profile, rules: PlatformRules) -> List[BrandMention]:
    """One mention per signal in ``item`` that names a brand.

    Signals without a brand are dropped.  Repeats of a brand within the item
    are left for :func:`~brandscout.pipeline.aggregation.deduplicate_within_brand`.
    """
    engagement = engagement_of(item, rules)
    return [
        BrandMention(
            brand=signal.brand,
            brand_key=normalize_brand(signal.brand),
            content_id=item.id,
            content_url=item.url,
            excerpt=item.text[:EXCERPT_LENGTH],
            creator_handle=creator.handle,
            creator_followers=item.owner_followers or creator.followers,
            engagement=engagement,
            published_at=item.published_at,
            kind=signal.kind,
            discount_code=signal.discount_code,
            sponsor_url=signal.sponsor_url,
        )
        for signal in detect_signals(item.text, item.hashtags, item.tagged_accounts, rules=rules)
        if signal.brand
    ]


class PartnershipExtraction:
    def __init__(self, fetcher: ProfileFetcher, rules: PlatformRules, timeout: Optional[float] = None) -> None:
        self.fetcher = fetcher
        self.rules = rules
        self.timeout = timeout

    async def mentions_for(self, creator: Profile) -> List[BrandMention]:
        items = await self.fetcher.fetch_recent_content(creator.handle, self.rules.content_per_creator)
        return [
            mention
            for item in items
            for mention in mentions_from_content(item, creator, self.rules)
        ]

    async def extract(self, creators: Sequence[Profile]) -> List[BrandMention]:
        """All mentions across ``creators``, in creator order, not deduplicated."""
        outcomes = await gather_in_batches(
            list(creators), self.mentions_for, self.rules.extraction_batch_size, self.timeout
        )
        log_failures(outcomes, "Content fetch")
        mentions = [
            mention
            for outcome in outcomes if isinstance(outcome, Ok)
            for mention in outcome.value
        ]
        logger.info("Extracted %d brand mentions from %d creators", len(mentions), len(creators))
        return mentions
