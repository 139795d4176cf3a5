"""Interfaces of the services the pipeline depends on.

Concrete implementations live in ``data_collection`` (fetchers) and
``brandscout.services`` (language model, SQL stores); tests pass fakes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..schemas import ContentItem, CreatorScore, Profile


class ProfileFetcher(Protocol):
    async def fetch_profile(self, handle: str) -> Optional[Profile]:
        """Return the profile, or ``None`` when the handle does not exist."""

    async def fetch_related_profiles(self, handle: str, limit: int) -> List[Profile]:
        ...

    async def fetch_recent_content(self, handle: str, limit: int) -> List[ContentItem]:
        ...


class SimilarityScorer(Protocol):
    async def score_batch(self, candidates: Sequence[Profile], seed: Profile) -> List[CreatorScore]:
        ...


class NicheDetector(Protocol):
    async def detect_niche(self, profile: Profile) -> str:
        ...


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[Tuple[Dict[str, Any], datetime]]:
        """Return ``(payload, created_at)`` or ``None``."""

    async def upsert(self, key: str, payload: Dict[str, Any], created_at: datetime) -> None:
        ...


class RateLimitStore(Protocol):
    async def count_since(self, requester_id: str, since: datetime) -> int:
        ...

    async def record(self, requester_id: str, timestamp: datetime) -> None:
        ...
