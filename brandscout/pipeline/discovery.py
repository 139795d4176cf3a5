"""Candidate discovery.

Given a seed creator, find creators a brand would plausibly hire alongside
them.  The primary source is the platform's "related accounts" list; when it
errors, comes back empty or yields fewer than ``primary_success_threshold``
qualifying accounts, the curated list for the seed's niche is used instead.
A fallback candidate set is a normal outcome and is reported as such through
:attr:`CandidateSet.source`, so later stages can skip scoring.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..schemas import CandidateSource, Profile
from .collaborators import ProfileFetcher
from .results import Failed, Ok, attempt, gather_in_batches, log_failures
from .rules import PlatformRules

logger = logging.getLogger(__name__)

DEFAULT_NICHE = "lifestyle"

NICHE_SYNONYMS = {
    "gym": "fitness", "workout": "fitness", "workouts": "fitness", "training": "fitness",
    "trainer": "fitness", "coach": "fitness", "yoga": "fitness", "pilates": "fitness",
    "makeup": "beauty", "skincare": "beauty", "cosmetics": "beauty", "mua": "beauty",
    "style": "fashion", "outfit": "fashion", "outfits": "fashion", "stylist": "fashion",
    "recipe": "food", "recipes": "food", "chef": "food", "cooking": "food", "foodie": "food",
    "wanderlust": "travel", "adventure": "travel", "traveler": "travel", "traveller": "travel",
    "gadgets": "tech", "technology": "tech", "reviews": "tech", "techie": "tech",
    "gamer": "gaming", "streamer": "gaming", "esports": "gaming", "games": "gaming",
}

_BIO_STOP_WORDS = frozenset({
    "with", "from", "your", "this", "that", "here", "link", "below", "follow",
    "official", "account", "page", "welcome", "email", "contact", "inquiries",
    "business", "management", "about", "just", "love", "life",
})


def normalise_handle(handle: str) -> str:
    """Handles compare case-insensitively and without a leading ``@``."""
    return (handle or "").strip().lstrip("@").casefold()


def keyword_niche(biography: str, known_niches: Iterable[str]) -> str:
    """Guess a niche from biography keywords.

    A word naming a known niche (or a synonym of one) wins; otherwise the
    first reasonably long word is used, and ``"lifestyle"`` when there is
    none.
    """
    words = re.findall(r"[a-z]+", (biography or "").casefold())
    known = set(known_niches) | set(NICHE_SYNONYMS.values())
    for word in words:
        if word in known:
            return word
        if word in NICHE_SYNONYMS:
            return NICHE_SYNONYMS[word]
    for word in words:
        if len(word) > 3 and word not in _BIO_STOP_WORDS:
            return word
    return DEFAULT_NICHE


@dataclass(frozen=True)
class CandidateSet:
    profiles: List[Profile] = field(default_factory=list)
    source: CandidateSource = CandidateSource.related

    @property
    def used_fallback(self) -> bool:
        return self.source is CandidateSource.fallback


class CandidateDiscovery:
    """Produce the candidate creators for one seed."""

    def __init__(
        self,
        fetcher: ProfileFetcher,
        rules: PlatformRules,
        *,
        min_followers: int = 10_000,
        timeout: Optional[float] = None,
    ) -> None:
        self.fetcher = fetcher
        self.rules = rules
        self.min_followers = min_followers
        self.timeout = timeout

    def is_brand_like(self, profile: Profile) -> bool:
        bio = profile.biography.casefold()
        return any(marker.casefold() in bio for marker in self.rules.brand_like_markers)

    def qualifies(self, profile: Profile, seed: Profile) -> bool:
        """Follower count within ``[min_followers, seed.followers * 5]`` and not a brand."""
        if normalise_handle(profile.handle) == normalise_handle(seed.handle):
            return False
        if not self.min_followers <= profile.followers <= seed.followers * 5:
            return False
        return not self.is_brand_like(profile)

    async def discover(self, seed_handle: str, seed_profile: Profile, niche: str) -> CandidateSet:
        outcome = await attempt(
            seed_handle,
            self.fetcher.fetch_related_profiles(seed_handle, self.rules.related_limit),
            self.timeout,
        )
        if isinstance(outcome, Failed):
            logger.warning("Related-account lookup failed for @%s: %s", seed_handle, outcome.reason)
        else:
            qualifying = self._unique(p for p in outcome.value if self.qualifies(p, seed_profile))
            logger.info(
                "@%s: %d related accounts, %d qualifying",
                seed_handle, len(outcome.value), len(qualifying),
            )
            if len(qualifying) >= self.rules.primary_success_threshold:
                return CandidateSet(qualifying[: self.rules.primary_cap], CandidateSource.related)

        profiles = await self.fallback(niche, exclude=seed_handle)
        logger.info(
            "@%s: using curated %s creators (%d kept)",
            seed_handle, self.rules.niche_key(niche), len(profiles),
        )
        return CandidateSet(profiles, CandidateSource.fallback)

    async def fallback(self, niche: str, exclude: str = "") -> List[Profile]:
        """Fetch the curated creators for ``niche``, keeping established accounts."""
        handles = [
            handle for handle in self.rules.fallback_handles(niche)
            if normalise_handle(handle) != normalise_handle(exclude)
        ]
        outcomes = await gather_in_batches(
            handles, self.fetcher.fetch_profile, self.rules.extraction_batch_size, self.timeout
        )
        log_failures(outcomes, "Curated profile fetch")
        kept = [
            outcome.value for outcome in outcomes
            if isinstance(outcome, Ok) and outcome.value is not None
            and outcome.value.followers >= self.min_followers
        ]
        return kept[: self.rules.fallback_cap]

    @staticmethod
    def _unique(profiles: Iterable[Profile]) -> List[Profile]:
        seen = set()
        unique = []
        for profile in profiles:
            key = normalise_handle(profile.handle)
            if key not in seen:
                seen.add(key)
                unique.append(profile)
        return unique
