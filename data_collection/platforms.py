"""Platform-specific profile and content fetchers.

Each fetcher implements the three calls the discovery pipeline needs:
``fetch_profile``, ``fetch_related_profiles`` and ``fetch_recent_content``.

* Instagram and TikTok go through Apify actors (``apify-client``).  Instagram
  has a related-accounts actor; TikTok has none, so its related list is
  empty and discovery falls back to the curated creators.
* YouTube uses the Data API v3 over ``requests``.  There is no
  related-channels endpoint any more, so the related list is empty too.

Without credentials the fetchers still resolve profiles by reading the
public profile page's meta tags with ``BeautifulSoup``; Apify-backed
related-account and content lookups then raise
:class:`~brandscout.errors.UpstreamTransient`.

The underlying clients are blocking, so every call runs in a worker thread
via ``asyncio.to_thread``.  "Profile does not exist" is reported as
``None``; any transport or upstream failure as ``UpstreamTransient``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from apify_client import ApifyClient
from bs4 import BeautifulSoup

from brandscout.errors import UpstreamTransient
from brandscout.schemas import ContentItem, Platform, Profile

from .normalise import (
    PROFILE_URLS,
    content_from_payloads,
    parse_count,
    profile_from_payload,
    profiles_from_payloads,
)
from .utils import make_request, rate_limited

logger = logging.getLogger(__name__)


class PublicPageScraper:
    """Reads a public profile page and extracts what its meta tags expose.

    Platforms obfuscate most data for anonymous visitors, so this yields a
    display name, a description and, where the page advertises it, a
    follower count.  A 404 means the handle does not exist.
    """

    def __init__(self, platform: Platform, proxies: Optional[Iterable[str]] = None, timeout: int = 10) -> None:
        self.platform = platform
        self.proxies = proxies
        self.timeout = timeout

    @rate_limited(1.0)
    def get_profile(self, handle: str) -> Optional[Dict[str, object]]:
        url = PROFILE_URLS[self.platform].format(handle=handle)
        resp = make_request(url, proxies=self.proxies, timeout=self.timeout)
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise UpstreamTransient(f"{url} returned HTTP {resp.status_code}")
        soup = BeautifulSoup(resp.text, "html.parser")

        title = _meta(soup, property="og:title") or (soup.title.text.strip() if soup.title else "")
        # "Marques Brownlee (@mkbhd) • Instagram photos and videos"
        name_match = re.match(r"(.+?) \(@.+?\)", title)
        description = _meta(soup, property="og:description") or _meta(soup, name="description")
        # "1.4M Followers, 123 Following, 1,234 Posts - See Instagram photos..."
        followers_match = re.search(r"([\d.,]+\s*[KkMmBb]?)\s+(?:Followers|subscribers)", description or "")
        followers = parse_count(followers_match.group(1)) if followers_match else 0
        if not followers:
            followers = parse_count(_meta(soup, itemprop="interactionCount"))
        return {
            "username": handle,
            "fullName": name_match.group(1) if name_match else (title or handle),
            "biography": description or "",
            "followersCount": followers,
            "url": url,
        }


def _meta(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return str(tag["content"]).strip()
    return None


class ApifyFetcher:
    """Shared plumbing for fetchers backed by Apify actors."""

    platform: Platform
    PROFILE_ACTOR = ""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        actor_timeout_secs: int = 300,
        proxies: Optional[Iterable[str]] = None,
    ) -> None:
        self.client = ApifyClient(token) if token else None
        self.actor_timeout_secs = actor_timeout_secs
        self.scraper = PublicPageScraper(self.platform, proxies=proxies)

    def _run_actor(self, actor_id: str, run_input: Dict[str, Any], max_items: Optional[int] = None) -> List[Dict[str, Any]]:
        if self.client is None:
            raise UpstreamTransient(f"APIFY_API_TOKEN is not configured; cannot run {actor_id}")
        call_kwargs: Dict[str, Any] = {"run_input": run_input, "timeout_secs": self.actor_timeout_secs}
        if max_items is not None:
            call_kwargs["max_items"] = max_items
        run = self.client.actor(actor_id).call(**call_kwargs)
        if not run:
            raise UpstreamTransient(f"Actor {actor_id} did not return a run")
        return list(self.client.dataset(run["defaultDatasetId"]).iterate_items())

    async def run_actor(self, actor_id: str, run_input: Dict[str, Any], max_items: Optional[int] = None) -> List[Dict[str, Any]]:
        logger.debug("Running %s with %s", actor_id, run_input)
        try:
            items = await asyncio.to_thread(self._run_actor, actor_id, run_input, max_items)
        except UpstreamTransient:
            raise
        except Exception as exc:
            raise UpstreamTransient(f"Actor {actor_id} failed: {exc}") from exc
        logger.debug("%s returned %d items", actor_id, len(items))
        return items

    async def scrape_profile(self, handle: str) -> Optional[Profile]:
        raw = await asyncio.to_thread(self.scraper.get_profile, handle)
        return profile_from_payload(self.platform, raw, handle) if raw else None

    def _profile_input(self, handle: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def fetch_profile(self, handle: str) -> Optional[Profile]:
        if self.client is None:
            return await self.scrape_profile(handle)
        items = await self.run_actor(self.PROFILE_ACTOR, self._profile_input(handle), max_items=1)
        items = [item for item in items if not item.get("error")]
        if not items:
            return None
        return profile_from_payload(self.platform, items[0], handle)


class InstagramFetcher(ApifyFetcher):
    platform = Platform.instagram
    PROFILE_ACTOR = "apify/instagram-profile-scraper"
    RELATED_ACTOR = "scrapio/instagram-related-person-scraper"
    POSTS_ACTOR = "apify/instagram-scraper"

    def _profile_input(self, handle: str) -> Dict[str, Any]:
        return {"usernames": [handle]}

    async def fetch_related_profiles(self, handle: str, limit: int) -> List[Profile]:
        items = await self.run_actor(self.RELATED_ACTOR, {"username": handle, "resultsLimit": limit})
        return profiles_from_payloads(self.platform, items)[:limit]

    async def fetch_recent_content(self, handle: str, limit: int) -> List[ContentItem]:
        items = await self.run_actor(
            self.POSTS_ACTOR,
            {
                "directUrls": [PROFILE_URLS[self.platform].format(handle=handle)],
                "resultsType": "posts",
                "resultsLimit": limit,
            },
            max_items=limit,
        )
        owner = Profile(platform=self.platform, handle=handle)
        return content_from_payloads(self.platform, items, owner)[:limit]


class TikTokFetcher(ApifyFetcher):
    platform = Platform.tiktok
    PROFILE_ACTOR = "clockworks/tiktok-profile-scraper"
    VIDEOS_ACTOR = "clockworks/tiktok-scraper"

    def _profile_input(self, handle: str) -> Dict[str, Any]:
        return {"profiles": [handle], "resultsPerPage": 1}

    async def fetch_related_profiles(self, handle: str, limit: int) -> List[Profile]:
        return []

    async def fetch_recent_content(self, handle: str, limit: int) -> List[ContentItem]:
        items = await self.run_actor(
            self.VIDEOS_ACTOR, {"profiles": [handle], "resultsPerPage": limit}, max_items=limit
        )
        owner = Profile(platform=self.platform, handle=handle)
        return content_from_payloads(self.platform, items, owner)[:limit]


class YouTubeFetcher:
    """YouTube Data API v3 client."""

    platform = Platform.youtube
    API_URL = "https://www.googleapis.com/youtube/v3"

    def __init__(self, api_key: Optional[str] = None, *, proxies: Optional[Iterable[str]] = None, timeout: int = 15) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.scraper = PublicPageScraper(self.platform, proxies=proxies)

    @rate_limited(0.2)
    def _get(self, resource: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamTransient("YOUTUBE_API_KEY is not configured")
        resp = make_request(f"{self.API_URL}/{resource}", params={**params, "key": self.api_key}, timeout=self.timeout)
        if resp.status_code != 200:
            raise UpstreamTransient(f"YouTube {resource} returned HTTP {resp.status_code}")
        return resp.json()

    async def fetch_profile(self, handle: str) -> Optional[Profile]:
        if not self.api_key:
            raw = await asyncio.to_thread(self.scraper.get_profile, handle)
            return profile_from_payload(self.platform, raw, handle) if raw else None
        data = await asyncio.to_thread(
            self._get, "channels", {"part": "snippet,statistics", "forHandle": "@" + handle}
        )
        items = data.get("items") or []
        if not items:
            return None
        return profile_from_payload(self.platform, items[0], handle)

    async def fetch_related_profiles(self, handle: str, limit: int) -> List[Profile]:
        return []

    async def fetch_recent_content(self, handle: str, limit: int) -> List[ContentItem]:
        channel = await self.fetch_profile(handle)
        if channel is None or not channel.external_id:
            return []
        search = await asyncio.to_thread(
            self._get,
            "search",
            {"part": "id", "channelId": channel.external_id, "order": "date", "type": "video", "maxResults": limit},
        )
        video_ids = [
            item["id"]["videoId"]
            for item in search.get("items") or []
            if isinstance(item.get("id"), dict) and item["id"].get("videoId")
        ]
        if not video_ids:
            return []
        videos = await asyncio.to_thread(
            self._get, "videos", {"part": "snippet,statistics", "id": ",".join(video_ids)}
        )
        return content_from_payloads(self.platform, videos.get("items") or [], channel)[:limit]


def fetcher_for(
    platform: Platform,
    *,
    apify_token: Optional[str] = None,
    youtube_api_key: Optional[str] = None,
    proxies: Optional[Iterable[str]] = None,
):
    """Return the fetcher for ``platform`` configured with the given credentials."""
    platform = Platform(platform)
    if platform is Platform.instagram:
        return InstagramFetcher(apify_token, proxies=proxies)
    if platform is Platform.tiktok:
        return TikTokFetcher(apify_token, proxies=proxies)
    return YouTubeFetcher(youtube_api_key, proxies=proxies)
