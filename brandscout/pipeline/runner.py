"""One discovery run for one seed creator, without caching or rate limits.

The stages run strictly in order: seed profile, niche, candidate discovery,
scoring (skipped for curated candidates), partnership extraction over the
top finalists and aggregation.  Only a missing seed profile (``NotFound``)
or a failure to fetch it (``UpstreamTransient``) ends a run early; every
later failure is absorbed by the stage that hit it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..config import Settings
from ..errors import NotFound, UpstreamTransient
from ..schemas import DiscoveryResult, Profile, ScoredCreator
from .aggregation import aggregate, utcnow
from .collaborators import NicheDetector, ProfileFetcher, SimilarityScorer
from .discovery import CandidateDiscovery, CandidateSet, keyword_niche, normalise_handle
from .extraction import PartnershipExtraction
from .results import Failed, attempt
from .rules import PlatformRules
from .scoring import ScoringStage

logger = logging.getLogger(__name__)


class DiscoveryPipeline:
    """Wire the stages for one platform around injected collaborators."""

    def __init__(
        self,
        rules: PlatformRules,
        fetcher: ProfileFetcher,
        scorer: SimilarityScorer,
        niche_detector: Optional[NicheDetector] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        settings = settings or Settings()
        self.rules = rules
        self.fetcher = fetcher
        self.niche_detector = niche_detector
        self.settings = settings
        self.clock = clock
        self.timeout = settings.collaborator_timeout_seconds
        self.discovery = CandidateDiscovery(
            fetcher, rules, min_followers=settings.min_followers, timeout=self.timeout
        )
        self.scoring = ScoringStage(scorer, rules, self.timeout)
        self.extraction = PartnershipExtraction(fetcher, rules, self.timeout)

    async def fetch_seed(self, handle: str) -> Profile:
        outcome = await attempt(handle, self.fetcher.fetch_profile(handle), self.timeout)
        if isinstance(outcome, Failed):
            raise UpstreamTransient(f"Could not fetch @{handle}: {outcome.reason}")
        if outcome.value is None:
            raise NotFound(handle)
        return outcome.value

    async def detect_niche(self, seed: Profile) -> str:
        """Ask the niche detector, falling back to biography keywords."""
        if self.niche_detector is not None:
            outcome = await attempt(seed.handle, self.niche_detector.detect_niche(seed), self.timeout)
            if isinstance(outcome, Failed):
                logger.warning("Niche detection failed for @%s: %s", seed.handle, outcome.reason)
            elif outcome.value and outcome.value.strip():
                return outcome.value.strip().lower()
        return keyword_niche(seed.biography, self.rules.fallback_creators)

    async def rank_candidates(self, candidates: CandidateSet, seed: Profile, niche: str) -> List[ScoredCreator]:
        if candidates.used_fallback:
            reasoning = f"Curated {self.rules.niche_key(niche)} creator on {self.rules.platform.value}"
            return [
                ScoredCreator.from_profile(profile, self.rules.fallback_score, reasoning)
                for profile in candidates.profiles
            ]
        return await self.scoring.score(candidates.profiles, seed)

    async def run(self, seed_handle: str) -> DiscoveryResult:
        handle = normalise_handle(seed_handle)
        seed = await self.fetch_seed(handle)
        niche = await self.detect_niche(seed)
        logger.info("@%s on %s: niche %r, %d followers", handle, self.rules.platform.value, niche, seed.followers)

        candidates = await self.discovery.discover(handle, seed, niche)
        creators = await self.rank_candidates(candidates, seed, niche)
        finalists = creators[: self.rules.finalist_count]

        mentions = await self.extraction.extract(finalists)
        opportunities = aggregate(
            mentions,
            require_corroboration=self.rules.require_corroboration and not candidates.used_fallback,
            min_creators=self.settings.min_corroborating_creators,
            rank_by=self.rules.rank_by,
            max_results=self.rules.max_opportunities,
            example_count=self.rules.example_count,
            recent_days=self.rules.recent_days,
            now=self.clock(),
        )
        return DiscoveryResult(
            similar_creators=creators,
            brand_opportunities=opportunities,
            candidate_source=candidates.source,
            niche=niche,
        )
