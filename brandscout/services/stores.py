"""SQL-backed cache and rate-limit stores.

Both stores open a short-lived session per call from the application's
``async_sessionmaker``.  SQLite hands timestamps back without a timezone;
they are stored and read as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import DiscoveryLog, SimilarityCache
from ..schemas import Platform


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlCacheStore:
    """Similarity cache for one platform, keyed by normalised seed handle."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], platform: Platform) -> None:
        self.session_factory = session_factory
        self.platform = Platform(platform)

    async def get(self, key: str) -> Optional[Tuple[Dict[str, Any], datetime]]:
        async with self.session_factory() as session:
            row = await session.get(SimilarityCache, (self.platform.value, key))
            if row is None:
                return None
            return row.payload, _utc(row.created_at)

    async def upsert(self, key: str, payload: Dict[str, Any], created_at: datetime) -> None:
        """Insert or replace the entry for ``key``."""
        async with self.session_factory() as session:
            async with session.begin():
                await session.merge(SimilarityCache(
                    platform=self.platform.value,
                    handle=key,
                    payload=payload,
                    created_at=_utc(created_at),
                ))


class SqlRateLimitStore:
    """Request log shared by every platform."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def count_since(self, requester_id: str, since: datetime) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(DiscoveryLog.id)).where(
                    DiscoveryLog.requester_id == requester_id,
                    DiscoveryLog.created_at > _utc(since),
                )
            )
            return int(result.scalar_one())

    async def record(self, requester_id: str, timestamp: datetime) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(DiscoveryLog(requester_id=requester_id, created_at=_utc(timestamp)))
