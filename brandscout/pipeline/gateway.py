"""Cache and rate-limit gateway around the discovery pipeline.

Every request walks a small state machine::

    START -> RATE_CHECK -> REJECTED
                        -> CACHE_LOOKUP -> CACHE_HIT -> RETURN_CACHED
                                        -> CACHE_MISS -> RUN_PIPELINE
                                           -> WRITE_CACHE -> RETURN_FRESH

Transitions are checked against :data:`TRANSITIONS`; an observer callback
can follow the states to report progress.

The rate limit counts admitted requests (cache hits included) in a trailing
window.  Counting and recording run under a per-requester lock, so
concurrent requests served by one process cannot overshoot the cap.

The stores are best effort: a rate-limit store that cannot be read lets
the request through, a cache that cannot be read is a miss, and a failed
cache or request-log write is logged and ignored.  Cache entries older
than the TTL are ignored but never deleted here.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from pydantic import ValidationError

from ..config import Settings
from ..errors import RateLimitExceeded
from ..schemas import DiscoveryResult
from .aggregation import as_utc, utcnow
from .collaborators import CacheStore, RateLimitStore
from .discovery import normalise_handle
from .runner import DiscoveryPipeline

logger = logging.getLogger(__name__)


class GatewayState(str, enum.Enum):
    start = "START"
    rate_check = "RATE_CHECK"
    cache_lookup = "CACHE_LOOKUP"
    cache_hit = "CACHE_HIT"
    cache_miss = "CACHE_MISS"
    run_pipeline = "RUN_PIPELINE"
    write_cache = "WRITE_CACHE"
    return_cached = "RETURN_CACHED"
    return_fresh = "RETURN_FRESH"
    rejected = "REJECTED"


TRANSITIONS: Dict[GatewayState, FrozenSet[GatewayState]] = {
    GatewayState.start: frozenset({GatewayState.rate_check}),
    GatewayState.rate_check: frozenset({GatewayState.cache_lookup, GatewayState.rejected}),
    GatewayState.cache_lookup: frozenset({GatewayState.cache_hit, GatewayState.cache_miss}),
    GatewayState.cache_hit: frozenset({GatewayState.return_cached}),
    GatewayState.cache_miss: frozenset({GatewayState.run_pipeline}),
    GatewayState.run_pipeline: frozenset({GatewayState.write_cache}),
    GatewayState.write_cache: frozenset({GatewayState.return_fresh}),
    GatewayState.return_cached: frozenset(),
    GatewayState.return_fresh: frozenset(),
    GatewayState.rejected: frozenset(),
}

TERMINAL_STATES = frozenset(state for state, targets in TRANSITIONS.items() if not targets)

Observer = Callable[[GatewayState], None]

CACHED_FIELDS = {"similar_creators", "brand_opportunities", "candidate_source", "niche"}


class RequestProgress:
    """Current state of one request, advanced only along :data:`TRANSITIONS`."""

    def __init__(self, observer: Optional[Observer] = None) -> None:
        self.state = GatewayState.start
        self.observer = observer
        self.history = [self.state]
        self._notify()

    def advance(self, state: GatewayState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal gateway transition {self.state.value} -> {state.value}")
        logger.debug("gateway: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
        self._notify()

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _notify(self) -> None:
        if self.observer is not None:
            self.observer(self.state)


def cache_key(seed_handle: str) -> str:
    return normalise_handle(seed_handle)


class DiscoveryGateway:
    """Entry point for discovery requests on one platform."""

    def __init__(
        self,
        pipeline: DiscoveryPipeline,
        cache: CacheStore,
        rate_limits: RateLimitStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.pipeline = pipeline
        self.cache = cache
        self.rate_limits = rate_limits
        self.settings = settings or Settings()
        self.clock = clock
        self._admission_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self.settings.cache_ttl_days)

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.settings.rate_limit_window_seconds)

    async def run_discovery(
        self,
        seed_handle: str,
        requester_id: str,
        observer: Optional[Observer] = None,
    ) -> DiscoveryResult:
        """Serve a discovery request from cache or by running the pipeline.

        Raises :class:`~brandscout.errors.RateLimitExceeded` when the requester
        is over quota, and lets ``NotFound``/``UpstreamTransient`` from the
        seed fetch propagate.
        """
        started = time.perf_counter()
        progress = RequestProgress(observer)
        key = cache_key(seed_handle)

        progress.advance(GatewayState.rate_check)
        now = as_utc(self.clock())
        async with self._admission_locks[requester_id]:
            admitted = await self.admit(requester_id, now)
            if admitted:
                await self._record(requester_id, now)
        if not admitted:
            progress.advance(GatewayState.rejected)
            raise RateLimitExceeded(requester_id, self.settings.rate_limit_window_seconds)

        progress.advance(GatewayState.cache_lookup)
        entry = await self.lookup(key, now)
        if entry is not None:
            progress.advance(GatewayState.cache_hit)
            progress.advance(GatewayState.return_cached)
            return entry[0].model_copy(update={"cached": True, "processing_time_ms": _elapsed_ms(started)})

        progress.advance(GatewayState.cache_miss)
        progress.advance(GatewayState.run_pipeline)
        result = await self.pipeline.run(key)

        progress.advance(GatewayState.write_cache)
        await self._write(key, result)

        progress.advance(GatewayState.return_fresh)
        return result.model_copy(update={"cached": False, "processing_time_ms": _elapsed_ms(started)})

    async def peek_cache(self, seed_handle: str) -> Optional[Tuple[DiscoveryResult, datetime]]:
        """The live cache entry for ``seed_handle`` and when it was written."""
        return await self.lookup(cache_key(seed_handle), as_utc(self.clock()))

    async def admit(self, requester_id: str, now: datetime) -> bool:
        try:
            count = await self.rate_limits.count_since(requester_id, now - self.window)
        except Exception as exc:
            logger.warning("Rate-limit store unavailable, allowing %s: %s", requester_id, exc)
            return True
        if count >= self.settings.rate_limit_max_requests:
            logger.info("Rejecting %s: %d requests in the last %s", requester_id, count, self.window)
            return False
        return True

    async def lookup(self, key: str, now: datetime) -> Optional[Tuple[DiscoveryResult, datetime]]:
        try:
            entry = await self.cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if entry is None:
            return None
        payload, created_at = entry
        created_at = as_utc(created_at)
        if now - created_at > self.ttl:
            logger.debug("Cache entry for %s expired (written %s)", key, created_at.isoformat())
            return None
        try:
            return DiscoveryResult.model_validate(payload), created_at
        except ValidationError as exc:
            logger.warning("Unreadable cache entry for %s, treating as miss: %s", key, exc)
            return None

    async def _record(self, requester_id: str, now: datetime) -> None:
        try:
            await self.rate_limits.record(requester_id, now)
        except Exception as exc:
            logger.warning("Could not record request for %s: %s", requester_id, exc)

    async def _write(self, key: str, result: DiscoveryResult) -> None:
        payload = result.model_dump(mode="json", include=CACHED_FIELDS)
        try:
            await self.cache.upsert(key, payload, as_utc(self.clock()))
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
