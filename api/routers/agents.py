"""
Per-agent endpoints.

POST /agents/{agent_id}/score          → Score one agent right now (same pipeline as a batch task)
GET  /agents/{agent_id}/score-history  → History points + trend (delta, direction)

Unlike /batch/run, single-agent scoring has no task row to park a failure
on, so scoring errors come back as HTTP errors with the error kind as code.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from redis.asyncio import Redis

from api.dependencies import get_db, get_redis, get_caller_id, get_scoring_client
from api.schemas.agents import ScoreRequest, AgentScoreResponse, ScoreHistoryResponse
from batch.agent_scores import AgentScoringService
from batch.errors import BatchError
from batch.usage import UsageLimiter
from scoring.errors import ScoringError, sanitize

router = APIRouter(prefix="/agents", tags=["agents"])

# ScoringError.kind → HTTP status
_SCORING_STATUS = {
    "InsufficientData": 422,
    "NonJsonOutput": 502,
    "SchemaViolation": 502,
    "Timeout": 504,
    "ConfigurationError": 503,
}


@router.post("/{agent_id}/score", response_model=AgentScoreResponse)
async def score_agent(
    agent_id: str,
    score_in: ScoreRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    caller_id: str = Depends(get_caller_id),
    scoring_client=Depends(get_scoring_client),
) -> AgentScoreResponse:
    """Score one agent and store a snapshot + history point. Counts against the daily quota."""
    limiter = UsageLimiter(redis)
    service = AgentScoringService(db, scoring_client)
    try:
        await limiter.consume(caller_id)
    except BatchError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_detail())

    try:
        result = await service.score_agent(agent_id, score_in.window_size, caller_id)
    except BatchError as e:
        await limiter.refund(caller_id)
        raise HTTPException(status_code=e.http_status, detail=e.to_detail())
    except ScoringError as e:
        raise HTTPException(
            status_code=_SCORING_STATUS.get(e.kind, 502),
            detail={"code": e.kind, "message": sanitize(str(e))},
        )

    return AgentScoreResponse(
        agent_id=agent_id,
        score=result.outcome.parsed.to_dict(),
        used_repair=result.outcome.used_repair,
        snapshot_id=result.snapshot.id,
    )


@router.get("/{agent_id}/score-history", response_model=ScoreHistoryResponse)
async def get_score_history(
    agent_id: str,
    limit: int = Query(30, description="Points to return (2..200)"),
    db: AsyncSession = Depends(get_db),
    caller_id: str = Depends(get_caller_id),
) -> ScoreHistoryResponse:
    try:
        history = await AgentScoringService(db).history(agent_id, caller_id, limit=limit)
    except BatchError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_detail())
    return ScoreHistoryResponse(**history)
