"""Pydantic schemas for the brand-partnership discovery service.

These models define the canonical shapes that flow through the discovery
pipeline (profiles, content items, sponsorship signals, brand mentions and
the aggregated opportunities) as well as the request and response bodies of
the HTTP API.  Third-party payloads are normalised into ``Profile`` and
``ContentItem`` by the ``data_collection`` package before they reach any of
the pipeline stages.

Result models are frozen: they are computed once per pipeline run, written
into the cache entry and never mutated afterwards.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field


class Platform(str, enum.Enum):
    """Social platforms supported by the discovery pipeline."""

    instagram = "instagram"
    tiktok = "tiktok"
    youtube = "youtube"


class SignalKind(str, enum.Enum):
    """Kinds of sponsorship indicators found inside a content item."""

    hashtag = "hashtag"
    sponsor_phrase = "sponsor_phrase"
    discount_code = "discount_code"
    tagged_account = "tagged_account"


class CandidateSource(str, enum.Enum):
    """Where the candidate creators of a run came from."""

    related = "related"
    fallback = "fallback"


class RankBy(str, enum.Enum):
    """Primary sort key for brand opportunities."""

    engagement = "engagement"
    mentions = "mentions"


# ---------------------------------------------------------------------------
# Creators and content
# ---------------------------------------------------------------------------

class Profile(BaseModel):
    """A creator (or brand) account on a platform."""

    platform: Platform
    handle: str
    display_name: str = ""
    biography: str = ""
    followers: int = Field(0, ge=0)
    verified: bool = False
    is_business: bool = False
    url: str = ""
    external_id: Optional[str] = None

    model_config = {
        "frozen": True,
    }


class ContentItem(BaseModel):
    """A post or video fetched from a creator's recent content."""

    id: str
    url: str = ""
    title: str = ""
    caption: str = ""
    published_at: Optional[datetime] = None
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    views: int = Field(0, ge=0)
    hashtags: List[str] = Field(default_factory=list)
    tagged_accounts: List[str] = Field(default_factory=list)
    owner_handle: str = ""
    owner_followers: int = Field(0, ge=0)

    model_config = {
        "frozen": True,
    }

    @property
    def text(self) -> str:
        """Title and caption joined, the text scanned for signals."""
        return "\n".join(part for part in (self.title, self.caption) if part)


class ScoredCreator(Profile):
    """A candidate profile with its similarity score to the seed creator."""

    similarity_score: int = Field(..., ge=0, le=100)
    reasoning: str = ""

    @classmethod
    def from_profile(cls, profile: Profile, score: int, reasoning: str) -> "ScoredCreator":
        return cls(**profile.model_dump(), similarity_score=score, reasoning=reasoning)


class CreatorScore(BaseModel):
    """One entry of the language-model scoring response."""

    handle: str = Field(..., validation_alias=AliasChoices("handle", "username"))
    score: float
    reasoning: str = ""


class ScoringResponse(BaseModel):
    scores: List[CreatorScore] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Signals, mentions and opportunities
# ---------------------------------------------------------------------------

class SponsorshipSignal(BaseModel):
    """A sponsorship indicator detected inside one content item.

    ``brand`` is ``None`` when the indicator could not be tied to a brand
    name; such signals never become a :class:`BrandMention`.
    """

    kind: SignalKind
    span: str
    brand: Optional[str] = None
    discount_code: Optional[str] = None
    sponsor_url: Optional[str] = None

    model_config = {
        "frozen": True,
    }


class BrandMention(BaseModel):
    """One content item's resolved reference to one brand."""

    brand: str
    brand_key: str
    content_id: str
    content_url: str = ""
    excerpt: str = ""
    creator_handle: str
    creator_followers: int = 0
    engagement: int = 0
    published_at: Optional[datetime] = None
    kind: SignalKind
    discount_code: Optional[str] = None
    sponsor_url: Optional[str] = None

    model_config = {
        "frozen": True,
    }


class MentionExample(BaseModel):
    content_id: str
    url: str = ""
    excerpt: str = ""
    creator_handle: str
    engagement: int = 0
    published_at: Optional[datetime] = None

    model_config = {
        "frozen": True,
    }


class BrandOpportunity(BaseModel):
    """A brand aggregated across every mention found in a run."""

    brand: str
    mention_count: int
    creator_count: int
    total_engagement: int
    average_creator_size: int
    recent_mention_count: int = 0
    discount_codes: List[str] = Field(default_factory=list)
    sponsor_url: Optional[str] = None
    examples: List[MentionExample] = Field(default_factory=list)

    model_config = {
        "frozen": True,
    }


class DiscoveryResult(BaseModel):
    """Outcome of one discovery request as returned to the caller."""

    similar_creators: List[ScoredCreator] = Field(default_factory=list)
    brand_opportunities: List[BrandOpportunity] = Field(default_factory=list)
    cached: bool = False
    processing_time_ms: int = 0
    candidate_source: Optional[CandidateSource] = None
    niche: Optional[str] = None


# ---------------------------------------------------------------------------
# API bodies
# ---------------------------------------------------------------------------

class DiscoveryRequest(BaseModel):
    handle: str = Field(..., min_length=1, max_length=100)


class DiscoveryMetadata(BaseModel):
    processing_time_ms: int
    cached: bool
    candidate_source: Optional[CandidateSource] = None
    niche: Optional[str] = None
    timestamp: datetime


class DiscoveryData(BaseModel):
    similar_creators: List[ScoredCreator]
    brand_opportunities: List[BrandOpportunity]
    metadata: DiscoveryMetadata


class DiscoveryResponse(BaseModel):
    success: bool = True
    data: DiscoveryData


class CacheStatus(BaseModel):
    cached: bool
    cached_at: Optional[datetime] = None
    similar_creators: List[ScoredCreator] = Field(default_factory=list)
    brand_opportunities: List[BrandOpportunity] = Field(default_factory=list)

