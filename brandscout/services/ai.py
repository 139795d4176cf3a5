"""Language-model services used by the discovery pipeline.

Two collaborators live here, both backed by OpenAI chat completions:

* :class:`OpenAISimilarityScorer` rates a batch of candidate creators
  against the seed creator.  The model is asked whether brands hiring the
  seed would also want to hire each candidate, on a 0-100 scale with a short
  justification, and must answer with a JSON object of the form
  ``{"scores": [{"username": ..., "score": ..., "reasoning": ...}]}``.
* :class:`OpenAINicheDetector` names the seed creator's primary niche in a
  few words.

Neither class swallows errors.  A failed call raises the SDK's exception and
an answer that is not the expected JSON raises
:class:`~brandscout.errors.ParseFailure`; the pipeline turns both into its
per-batch fallback.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

import openai
from pydantic import ValidationError

from ..errors import ParseFailure
from ..schemas import CreatorScore, Profile, ScoringResponse

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def build_scoring_prompt(candidates: Sequence[Profile], seed: Profile) -> str:
    """Describe the seed and the candidate batch for the scoring model."""
    lines = [
        "You are a brand partnership expert analysing creator similarity.",
        "",
        "SEED CREATOR:",
        f"- Handle: @{seed.handle}",
        f"- Name: {seed.display_name}",
        f"- Bio: {seed.biography}",
        f"- Followers: {seed.followers:,}",
        "",
        "TASK: Rate each candidate creator on a 0-100 scale answering:",
        f'"Would brands hiring @{seed.handle} also want to hire this creator?"',
        "",
        "CANDIDATES:",
    ]
    for number, candidate in enumerate(candidates, start=1):
        lines.extend([
            f"{number}. @{candidate.handle}",
            f"   Name: {candidate.display_name}",
            f"   Bio: {candidate.biography}",
            f"   Followers: {candidate.followers:,}",
        ])
    lines.extend([
        "",
        "Respond ONLY with valid JSON:",
        '{"scores": [{"username": "creator1", "score": 85, '
        '"reasoning": "Strong niche overlap, similar audience"}]}',
    ])
    return "\n".join(lines)


def parse_scoring_response(content: Optional[str]) -> List[CreatorScore]:
    """Extract the scores from a model answer.

    The first ``{`` to the last ``}`` is taken as the JSON document, so prose
    or code fences around it are tolerated.
    """
    match = _JSON_OBJECT_RE.search(content or "")
    if not match:
        raise ParseFailure("No JSON object in scoring response")
    try:
        return ScoringResponse.model_validate_json(match.group(0)).scores
    except ValidationError as exc:
        raise ParseFailure(f"Malformed scoring response: {exc.error_count()} errors") from exc


class _OpenAIService:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[openai.AsyncOpenAI] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        # Built on first use: the SDK refuses to construct without a key.
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client


class OpenAISimilarityScorer(_OpenAIService):
    """Scores candidate creators with an OpenAI chat model."""

    async def score_batch(self, candidates: Sequence[Profile], seed: Profile) -> List[CreatorScore]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": build_scoring_prompt(candidates, seed)}],
            temperature=0.2,
            max_tokens=2000,
        )
        return parse_scoring_response(response.choices[0].message.content)


class OpenAINicheDetector(_OpenAIService):
    """Names a creator's primary niche (for example "fitness" or "tech reviews")."""

    async def detect_niche(self, profile: Profile) -> str:
        prompt = (
            "Based on this creator profile, identify their primary niche in 1-3 words.\n\n"
            f"Handle: @{profile.handle}\n"
            f"Name: {profile.display_name}\n"
            f"Bio: {profile.biography}\n\n"
            'Respond with ONLY the niche (e.g. "fitness", "beauty", "tech reviews", "food").'
        )
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            max_tokens=20,
        )
        niche = (response.choices[0].message.content or "").strip().strip("\"'.").lower()
        if not niche:
            raise ParseFailure("Empty niche in model response")
        logger.debug("Niche for @%s: %s", profile.handle, niche)
        return niche
