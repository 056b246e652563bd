"""
Snapshots and the score history series.

- AgentScore: one immutable row per successful scoring. A rescore writes a
  new row, it never updates an old one.
- AgentScoreHistory: append-only (agent, score, window, time) points used by
  the trend endpoint. Integer ids give a stable tiebreak when two points
  share a timestamp.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Float, Boolean, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, utcnow


class AgentScore(Base):
    __tablename__ = "agent_scores"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    agent_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    window_size: Mapped[int] = mapped_column(Integer, nullable=False)
    # null when the score came from single-agent scoring rather than a batch
    job_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)

    # ── Scores (0..100) ─────────────────────────────────────────
    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    communication_score: Mapped[float] = mapped_column(Float, nullable=False)
    conversion_score: Mapped[float] = mapped_column(Float, nullable=False)
    risk_score: Mapped[float] = mapped_column(Float, nullable=False)          # higher = worse
    coaching_priority: Mapped[float] = mapped_column(Float, nullable=False)   # higher = more urgent

    # ── Signals ─────────────────────────────────────────────────
    strengths: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    weaknesses: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    key_patterns: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    repaired: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class AgentScoreHistory(Base):
    __tablename__ = "agent_score_history"
    __table_args__ = (
        Index("ix_agent_score_history_recent", "agent_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    window_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
