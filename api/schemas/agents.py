"""
Pydantic schemas for the /agents and /usage endpoints.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ScoreRequest(BaseModel):
    """Request body for POST /agents/{agent_id}/score."""

    window_size: Any = Field(default=30, description="Conversations to consider (10..100)")


class ScoreView(BaseModel):
    overall_score: float
    communication_score: float
    conversion_score: float
    risk_score: float
    coaching_priority: float
    strengths: list[str]
    weaknesses: list[str]
    key_patterns: list[str]


class AgentScoreResponse(BaseModel):
    agent_id: str
    score: ScoreView
    used_repair: bool
    snapshot_id: UUID


class HistoryPoint(BaseModel):
    t: datetime
    score: float
    window_size: int


class ScoreHistoryResponse(BaseModel):
    agent_id: str
    count: int
    last: Optional[float] = None
    prev: Optional[float] = None
    delta: Optional[float] = None
    direction: str
    window_delta: Optional[float] = None
    window_direction: str
    points: list[HistoryPoint]


class UsageResponse(BaseModel):
    day: str
    used: int
    remaining: int
    limit: int
