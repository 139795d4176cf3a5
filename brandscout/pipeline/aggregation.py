"""Aggregation of brand mentions into ranked opportunities.

Mentions are grouped by :func:`~brandscout.pipeline.signals.normalize_brand`
of their brand, so "Nike", "NIKE" and "nike!" are one brand while "Nike"
and "Nike Golf" stay apart.  Two modes exist:

* corroborated: a brand needs mentions from at least ``min_creators``
  distinct creators to be reported;
* raw signal: every brand is reported and ranked by signal strength alone.
  Runs built from the curated fallback list always use this mode, as do
  platforms whose rules disable corroboration.

Ranking is a stable descending sort, so identical input gives identical
output.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from ..schemas import BrandMention, BrandOpportunity, MentionExample, RankBy
from .signals import normalize_brand

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def deduplicate_within_brand(mentions: Sequence[BrandMention]) -> List[BrandMention]:
    """Collapse repeated mentions of one brand in one content item.

    The copy with the highest engagement is kept, completed with the first
    discount code and sponsor URL seen for that pair.
    """
    merged: Dict[Tuple[str, str], BrandMention] = {}
    for mention in mentions:
        key = (mention.brand_key or normalize_brand(mention.brand), mention.content_id)
        existing = merged.get(key)
        if existing is None:
            merged[key] = mention
            continue
        best = mention if mention.engagement > existing.engagement else existing
        merged[key] = best.model_copy(update={
            "discount_code": existing.discount_code or mention.discount_code,
            "sponsor_url": existing.sponsor_url or mention.sponsor_url,
        })
    return list(merged.values())


def canonical_name(group: Sequence[BrandMention]) -> str:
    """Most frequent spelling in the group; the earliest one wins a tie."""
    counts = Counter(mention.brand for mention in group)
    best = max(counts.values())
    return next(mention.brand for mention in group if counts[mention.brand] == best)


def summarise(
    group: Sequence[BrandMention],
    *,
    now: datetime,
    example_count: int = 3,
    recent_days: int = 30,
) -> BrandOpportunity:
    recent_cutoff = now - timedelta(days=recent_days)
    codes: List[str] = []
    for mention in group:
        if mention.discount_code and mention.discount_code not in codes:
            codes.append(mention.discount_code)
    examples = sorted(group, key=lambda mention: mention.engagement, reverse=True)[:example_count]
    return BrandOpportunity(
        brand=canonical_name(group),
        mention_count=len(group),
        creator_count=len({mention.creator_handle.casefold() for mention in group}),
        total_engagement=sum(mention.engagement for mention in group),
        average_creator_size=round(sum(m.creator_followers for m in group) / len(group)),
        recent_mention_count=sum(
            1 for m in group if m.published_at is not None and as_utc(m.published_at) >= recent_cutoff
        ),
        discount_codes=codes,
        sponsor_url=next((m.sponsor_url for m in group if m.sponsor_url), None),
        examples=[
            MentionExample(
                content_id=m.content_id,
                url=m.content_url,
                excerpt=m.excerpt,
                creator_handle=m.creator_handle,
                engagement=m.engagement,
                published_at=m.published_at,
            )
            for m in examples
        ],
    )


def rank_key(opportunity: BrandOpportunity, rank_by: RankBy) -> Tuple[int, int]:
    if rank_by is RankBy.mentions:
        return opportunity.mention_count, opportunity.total_engagement
    return opportunity.total_engagement, opportunity.mention_count


def aggregate(
    mentions: Sequence[BrandMention],
    *,
    require_corroboration: bool = True,
    min_creators: int = 2,
    rank_by: RankBy = RankBy.engagement,
    max_results: int = 20,
    example_count: int = 3,
    recent_days: int = 30,
    now: Optional[datetime] = None,
) -> List[BrandOpportunity]:
    """Group, filter and rank ``mentions`` into at most ``max_results`` opportunities."""
    now = as_utc(now or utcnow())
    groups: Dict[str, List[BrandMention]] = {}
    for mention in deduplicate_within_brand(mentions):
        groups.setdefault(mention.brand_key or normalize_brand(mention.brand), []).append(mention)

    opportunities = [
        summarise(group, now=now, example_count=example_count, recent_days=recent_days)
        for group in groups.values()
    ]
    if require_corroboration:
        dropped = [o.brand for o in opportunities if o.creator_count < min_creators]
        opportunities = [o for o in opportunities if o.creator_count >= min_creators]
        if dropped:
            logger.debug("Dropped uncorroborated brands: %s", ", ".join(dropped))

    opportunities.sort(key=lambda o: rank_key(o, rank_by), reverse=True)
    logger.info(
        "Aggregated %d mentions into %d brands (corroboration %s)",
        len(mentions), len(opportunities), "on" if require_corroboration else "off",
    )
    return opportunities[:max_results]
