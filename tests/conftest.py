"""Shared fakes for the discovery pipeline tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest

from brandscout.pipeline.discovery import normalise_handle
from brandscout.pipeline.signals import normalize_brand
from brandscout.schemas import (
    BrandMention,
    CandidateSource,
    ContentItem,
    CreatorScore,
    DiscoveryResult,
    Platform,
    Profile,
    ScoredCreator,
    SignalKind,
)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_profile(handle: str, followers: int = 50_000, bio: str = "", platform: Platform = Platform.instagram) -> Profile:
    return Profile(platform=platform, handle=handle, display_name=handle.title(), biography=bio, followers=followers)


def make_post(
    content_id: str,
    caption: str,
    *,
    likes: int = 0,
    comments: int = 0,
    views: int = 0,
    title: str = "",
    hashtags: Iterable[str] = (),
    tagged: Iterable[str] = (),
    owner_followers: int = 0,
    published_at: Optional[datetime] = None,
) -> ContentItem:
    return ContentItem(
        id=content_id,
        url=f"https://example.test/p/{content_id}",
        title=title,
        caption=caption,
        likes=likes,
        comments=comments,
        views=views,
        hashtags=list(hashtags),
        tagged_accounts=list(tagged),
        owner_followers=owner_followers,
        published_at=published_at,
    )


def make_mention(
    brand: str,
    creator: str,
    content_id: str,
    *,
    engagement: int = 100,
    followers: int = 50_000,
    discount_code: Optional[str] = None,
    sponsor_url: Optional[str] = None,
    published_at: Optional[datetime] = None,
) -> BrandMention:
    return BrandMention(
        brand=brand,
        brand_key=normalize_brand(brand),
        content_id=content_id,
        content_url=f"https://example.test/p/{content_id}",
        excerpt=f"{brand} post",
        creator_handle=creator,
        creator_followers=followers,
        engagement=engagement,
        published_at=published_at,
        kind=SignalKind.sponsor_phrase,
        discount_code=discount_code,
        sponsor_url=sponsor_url,
    )


class FakeFetcher:
    """In-memory ``ProfileFetcher``; unknown handles resolve to ``None``."""

    def __init__(
        self,
        profiles: Iterable[Profile] = (),
        related: Optional[List[Profile]] = None,
        content: Optional[Dict[str, List[ContentItem]]] = None,
        *,
        related_error: Optional[Exception] = None,
        failing_handles: Iterable[str] = (),
    ) -> None:
        self.profiles = {normalise_handle(p.handle): p for p in profiles}
        self.related = related or []
        self.content = {normalise_handle(h): items for h, items in (content or {}).items()}
        self.related_error = related_error
        self.failing_handles = {normalise_handle(h) for h in failing_handles}
        self.profile_calls: List[str] = []
        self.content_calls: List[str] = []

    async def fetch_profile(self, handle: str) -> Optional[Profile]:
        self.profile_calls.append(handle)
        if normalise_handle(handle) in self.failing_handles:
            raise RuntimeError(f"upstream error for {handle}")
        return self.profiles.get(normalise_handle(handle))

    async def fetch_related_profiles(self, handle: str, limit: int) -> List[Profile]:
        if self.related_error is not None:
            raise self.related_error
        return self.related[:limit]

    async def fetch_recent_content(self, handle: str, limit: int) -> List[ContentItem]:
        self.content_calls.append(handle)
        if normalise_handle(handle) in self.failing_handles:
            raise RuntimeError(f"upstream error for {handle}")
        return self.content.get(normalise_handle(handle), [])[:limit]


class FakeScorer:
    """Scores from a handle table; batch numbers in ``fail_on`` raise."""

    def __init__(self, scores: Optional[Dict[str, float]] = None, fail_on: Iterable[int] = (), default: float = 50) -> None:
        self.scores = scores or {}
        self.fail_on = set(fail_on)
        self.default = default
        self.batches: List[List[str]] = []

    async def score_batch(self, candidates, seed) -> List[CreatorScore]:
        self.batches.append([c.handle for c in candidates])
        if len(self.batches) in self.fail_on:
            raise RuntimeError("model unavailable")
        return [
            CreatorScore(handle=c.handle, score=self.scores.get(c.handle, self.default), reasoning="same niche")
            for c in candidates
        ]


class MemoryCache:
    def __init__(self) -> None:
        self.entries: Dict[str, tuple] = {}

    async def get(self, key):
        return self.entries.get(key)

    async def upsert(self, key, payload, created_at) -> None:
        self.entries[key] = (payload, created_at)


class MemoryRateLimits:
    def __init__(self) -> None:
        self.requests: List[tuple] = []

    async def count_since(self, requester_id, since) -> int:
        return sum(1 for who, when in self.requests if who == requester_id and when > since)

    async def record(self, requester_id, timestamp) -> None:
        self.requests.append((requester_id, timestamp))


class BrokenStore:
    """Every store call fails."""

    async def get(self, key):
        raise ConnectionError("store down")

    async def upsert(self, key, payload, created_at):
        raise ConnectionError("store down")

    async def count_since(self, requester_id, since):
        raise ConnectionError("store down")

    async def record(self, requester_id, timestamp):
        raise ConnectionError("store down")


class StubPipeline:
    """Returns a canned result, or raises ``error``."""

    def __init__(self, result: Optional[DiscoveryResult] = None, error: Optional[Exception] = None) -> None:
        self.result = result or sample_result()
        self.error = error
        self.calls: List[str] = []

    async def run(self, seed_handle: str) -> DiscoveryResult:
        self.calls.append(seed_handle)
        if self.error is not None:
            raise self.error
        return self.result


class Clock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def sample_result() -> DiscoveryResult:
    creator = ScoredCreator.from_profile(make_profile("similar_one", 80_000), 90, "same niche")
    return DiscoveryResult(
        similar_creators=[creator],
        brand_opportunities=[],
        candidate_source=CandidateSource.related,
        niche="fitness",
        processing_time_ms=5,
    )


@pytest.fixture
def clock() -> Clock:
    return Clock()
