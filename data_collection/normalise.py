"""Normalisation of third-party payloads.

Scraper actors and platform APIs disagree on field names (``followersCount``
vs ``follower_count`` vs ``authorMeta.fans`` vs
``statistics.subscriberCount``), number formats ("1.2M", ``"12,345"``,
integers) and timestamp formats (ISO strings, epoch seconds, epoch
milliseconds).  This module maps all of them onto the canonical
:class:`~brandscout.schemas.Profile` and
:class:`~brandscout.schemas.ContentItem` models.  Raw field names must not
leave this package.

Payloads that lack the fields a model cannot do without (a handle for a
profile, an id for a content item) normalise to ``None`` and are dropped by
the caller.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from brandscout.schemas import ContentItem, Platform, Profile

# Candidate source fields per canonical attribute, tried in order.  Dotted
# names walk into nested objects.
PROFILE_FIELDS: Dict[str, tuple] = {
    "handle": ("username", "uniqueId", "handle", "name", "snippet.customUrl", "user.uniqueId"),
    "display_name": ("fullName", "full_name", "nickName", "nickname", "snippet.title", "user.nickname"),
    "biography": ("biography", "bio", "signature", "snippet.description", "user.signature"),
    "followers": (
        "followersCount", "follower_count", "followers", "fans", "stats.followerCount",
        "statistics.subscriberCount", "subscriberCount",
    ),
    "verified": ("verified", "isVerified", "is_verified", "user.verified"),
    "is_business": ("isBusinessAccount", "is_business_account", "isBusiness", "is_business"),
    "url": ("url", "profileUrl", "profile_url"),
    "external_id": ("id", "pk", "userId", "user.id"),
}

CONTENT_FIELDS: Dict[str, tuple] = {
    "id": ("id", "shortCode", "shortcode", "video_id", "aweme_id"),
    "url": ("url", "webVideoUrl", "videoUrl", "link"),
    "title": ("snippet.title", "title"),
    "caption": ("caption", "text", "desc", "description", "snippet.description"),
    "published_at": (
        "timestamp", "createTimeISO", "createTime", "taken_at", "publishedAt", "snippet.publishedAt",
    ),
    "likes": ("likesCount", "like_count", "diggCount", "likes", "statistics.likeCount", "stats.diggCount"),
    "comments": (
        "commentsCount", "comment_count", "commentCount", "statistics.commentCount", "stats.commentCount",
    ),
    "views": (
        "videoViewCount", "videoPlayCount", "playCount", "view_count", "views",
        "statistics.viewCount", "stats.playCount",
    ),
    "hashtags": ("hashtags", "challenges", "snippet.tags"),
    "tagged_accounts": ("taggedUsers", "tagged_users", "usertags", "mentions"),
    "owner_handle": ("ownerUsername", "owner_username", "authorMeta.name", "author.uniqueId"),
    "owner_followers": ("ownerFollowersCount", "authorMeta.fans", "author.followerCount", "authorStats.followerCount"),
}

PROFILE_URLS = {
    Platform.instagram: "https://www.instagram.com/{handle}/",
    Platform.tiktok: "https://www.tiktok.com/@{handle}",
    Platform.youtube: "https://www.youtube.com/@{handle}",
}

_COUNT_RE = re.compile(r"([\d][\d,. ]*)\s*([kmb])?", re.IGNORECASE)
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}


def lookup(raw: Dict[str, Any], *paths: str, default: Any = None) -> Any:
    """Return the first non-empty value among ``paths`` in ``raw``."""
    for path in paths:
        value: Any = raw
        for part in path.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                value = None
                break
        if value not in (None, "", [], {}):
            return value
    return default


def parse_count(value: Any) -> int:
    """Parse follower and engagement counts such as ``12345``, ``"12,345"`` or ``"1.2M"``.

    Unparseable values count as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    if isinstance(value, (list, tuple)):
        return len(value)
    match = _COUNT_RE.search(str(value))
    if not match:
        return 0
    number, suffix = match.group(1).replace(",", "").replace(" ", ""), match.group(2)
    try:
        amount = float(number)
    except ValueError:
        return 0
    if suffix:
        amount *= _MULTIPLIERS[suffix.lower()]
    return max(0, int(round(amount)))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO strings and epoch seconds or milliseconds into aware UTC datetimes."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _names(values: Any) -> List[str]:
    """Strings out of lists of strings or objects (``{"username": ...}``, ``{"name": ...}``)."""
    if not values:
        return []
    if isinstance(values, str):
        values = re.split(r"[\s,]+", values)
    names = []
    for value in values:
        if isinstance(value, dict):
            value = lookup(value, "username", "name", "uniqueId", "title")
        if value:
            name = str(value).strip().lstrip("@#")
            if name:
                names.append(name)
    return names


def clean_handle(handle: Any) -> str:
    return str(handle or "").strip().lstrip("@")


def profile_from_payload(platform: Platform, raw: Dict[str, Any], handle: Optional[str] = None) -> Optional[Profile]:
    """Build a :class:`Profile` from any supported profile payload.

    TikTok video items carry the author in ``authorMeta``; that object is
    used when present.  ``handle`` fills in for payloads without one.
    """
    if not isinstance(raw, dict):
        return None
    if platform is Platform.tiktok:
        raw = raw.get("authorMeta") or raw.get("author") or raw
    resolved = clean_handle(lookup(raw, *PROFILE_FIELDS["handle"]) or handle)
    if not resolved:
        return None
    return Profile(
        platform=platform,
        handle=resolved,
        display_name=str(lookup(raw, *PROFILE_FIELDS["display_name"], default=resolved)),
        biography=str(lookup(raw, *PROFILE_FIELDS["biography"], default="")),
        followers=parse_count(lookup(raw, *PROFILE_FIELDS["followers"])),
        verified=bool(lookup(raw, *PROFILE_FIELDS["verified"], default=False)),
        is_business=bool(lookup(raw, *PROFILE_FIELDS["is_business"], default=False)),
        url=str(lookup(raw, *PROFILE_FIELDS["url"]) or PROFILE_URLS[platform].format(handle=resolved)),
        external_id=_optional_str(lookup(raw, *PROFILE_FIELDS["external_id"])),
    )


def content_from_payload(
    platform: Platform,
    raw: Dict[str, Any],
    owner: Optional[Profile] = None,
) -> Optional[ContentItem]:
    """Build a :class:`ContentItem` from a post or video payload."""
    if not isinstance(raw, dict):
        return None
    content_id = _optional_str(lookup(raw, *CONTENT_FIELDS["id"]))
    if not content_id:
        return None
    owner_handle = clean_handle(lookup(raw, *CONTENT_FIELDS["owner_handle"]) or (owner.handle if owner else ""))
    owner_followers = parse_count(lookup(raw, *CONTENT_FIELDS["owner_followers"]))
    if not owner_followers and owner is not None:
        owner_followers = owner.followers
    caption = str(lookup(raw, *CONTENT_FIELDS["caption"], default=""))
    title = str(lookup(raw, *CONTENT_FIELDS["title"], default="")) if platform is Platform.youtube else ""
    return ContentItem(
        id=content_id,
        url=str(lookup(raw, *CONTENT_FIELDS["url"]) or _content_url(platform, raw, content_id, owner_handle)),
        title=title,
        caption=caption,
        published_at=parse_timestamp(lookup(raw, *CONTENT_FIELDS["published_at"])),
        likes=parse_count(lookup(raw, *CONTENT_FIELDS["likes"])),
        comments=parse_count(lookup(raw, *CONTENT_FIELDS["comments"])),
        views=parse_count(lookup(raw, *CONTENT_FIELDS["views"])),
        hashtags=_names(lookup(raw, *CONTENT_FIELDS["hashtags"])),
        tagged_accounts=_names(lookup(raw, *CONTENT_FIELDS["tagged_accounts"])),
        owner_handle=owner_handle,
        owner_followers=owner_followers,
    )


def profiles_from_payloads(platform: Platform, items: Iterable[Dict[str, Any]]) -> List[Profile]:
    return [profile for profile in (profile_from_payload(platform, item) for item in items) if profile]


def content_from_payloads(
    platform: Platform, items: Iterable[Dict[str, Any]], owner: Optional[Profile] = None
) -> List[ContentItem]:
    return [item for item in (content_from_payload(platform, raw, owner) for raw in items) if item]


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def _content_url(platform: Platform, raw: Dict[str, Any], content_id: str, owner_handle: str) -> str:
    if platform is Platform.youtube:
        return f"https://www.youtube.com/watch?v={content_id}"
    if platform is Platform.tiktok:
        return f"https://www.tiktok.com/@{owner_handle}/video/{content_id}"
    short_code = lookup(raw, "shortCode", "shortcode", "code", default=content_id)
    return f"https://www.instagram.com/p/{short_code}/"
