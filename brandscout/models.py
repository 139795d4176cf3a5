"""Database models for the discovery service.

Two tables back the gateway: the per-platform similarity cache and the log
of admitted discovery requests used for rate limiting.

SQLAlchemy 2.0 type annotations are used throughout to provide static typing
and clarity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class SimilarityCache(Base):
    """Latest discovery result for a seed handle on one platform.

    Rows are replaced on every fresh run and never deleted; entries older
    than the TTL are ignored on read.
    """

    __tablename__ = "similarity_cache"

    platform: Mapped[str] = mapped_column(String(length=20), primary_key=True)
    handle: Mapped[str] = mapped_column(String(length=100), primary_key=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class DiscoveryLog(Base):
    """One row per admitted discovery request."""

    __tablename__ = "discovery_log"
    __table_args__ = (Index("ix_discovery_log_requester_created", "requester_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[str] = mapped_column(String(length=255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
