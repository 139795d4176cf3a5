"""Similarity scoring of related-account candidates.

Candidates are sent to the scorer in batches of ``scoring_batch_size``, one
batch at a time.  A batch whose call fails, times out or returns output that
cannot be parsed gets the fallback score for every candidate in it; the
other batches keep their real scores.  Candidates the scorer forgot to
mention get the fallback score too.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..schemas import CreatorScore, Profile, ScoredCreator
from .collaborators import SimilarityScorer
from .discovery import normalise_handle
from .results import Failed, Outcome, attempt
from .rules import PlatformRules

logger = logging.getLogger(__name__)

FALLBACK_REASONING = "Similar niche and audience"


def clamp_score(value: float) -> int:
    return max(0, min(100, int(round(value))))


class ScoringStage:
    def __init__(self, scorer: SimilarityScorer, rules: PlatformRules, timeout: Optional[float] = None) -> None:
        self.scorer = scorer
        self.rules = rules
        self.timeout = timeout

    async def score(self, candidates: Sequence[Profile], seed: Profile) -> List[ScoredCreator]:
        """Score every candidate against ``seed``, best first.

        Equal scores keep their input order.
        """
        size = self.rules.scoring_batch_size
        scored: List[ScoredCreator] = []
        for number, start in enumerate(range(0, len(candidates), size), start=1):
            batch = list(candidates[start:start + size])
            outcome = await attempt(f"scoring batch {number}", self.scorer.score_batch(batch, seed), self.timeout)
            scored.extend(self._merge(batch, outcome))
        scored.sort(key=lambda creator: creator.similarity_score, reverse=True)
        logger.info("Scored %d candidates for @%s", len(scored), seed.handle)
        return scored

    def _merge(self, batch: List[Profile], outcome: Outcome[List[CreatorScore]]) -> List[ScoredCreator]:
        if isinstance(outcome, Failed):
            logger.warning("%s failed: %s; using fallback scores", outcome.unit, outcome.reason)
            return [self.fallback(profile) for profile in batch]

        by_handle: Dict[str, CreatorScore] = {}
        for entry in outcome.value:
            by_handle.setdefault(normalise_handle(entry.handle), entry)
        merged = []
        for profile in batch:
            entry = by_handle.get(normalise_handle(profile.handle))
            if entry is None:
                merged.append(self.fallback(profile))
            else:
                merged.append(ScoredCreator.from_profile(
                    profile, clamp_score(entry.score), entry.reasoning or FALLBACK_REASONING
                ))
        return merged

    def fallback(self, profile: Profile) -> ScoredCreator:
        return ScoredCreator.from_profile(profile, self.rules.scoring_fallback_score, FALLBACK_REASONING)
