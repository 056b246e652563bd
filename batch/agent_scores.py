"""
Single-agent scoring and score trends.

score_agent() runs the same pipeline a batch task runs (window fetch →
prompt → score_with_repair → snapshot + history point), but for one agent,
outside any job, with errors surfacing to the caller instead of being
stored on a task.

history() reads the append-only history series and summarizes the trend:
    delta / direction          last point vs the one before it
    window_delta / direction   last point vs the first point returned
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.score import AgentScore
from repositories.directory import DirectoryRepository
from repositories.scores import ScoreRepository
from scoring.errors import ScoringError, to_scoring_error
from scoring.prompts import build_scoring_prompt
from scoring.repair import ScoreOutcome, score_with_repair
from scoring.window import WindowFetcher
from batch.controller import validate_window_size
from batch.errors import NotFound, InvalidLimit

logger = logging.getLogger(__name__)

MIN_HISTORY_LIMIT = 2
MAX_HISTORY_LIMIT = 200


@dataclass
class AgentScoreResult:
    outcome: ScoreOutcome
    snapshot: AgentScore


def _direction(delta: float | None) -> str:
    if delta is None or delta == 0:
        return "flat"
    return "up" if delta > 0 else "down"


def summarize_trend(points: list[dict]) -> dict:
    """
    Trend summary over points ordered oldest → newest (each has a "score").

    Example: scores 60, 70, 65.5 → delta=-4.5 "down", window_delta=5.5 "up"
    """
    last = points[-1]["score"] if points else None
    prev = points[-2]["score"] if len(points) >= 2 else None
    first = points[0]["score"] if points else None

    delta = round(last - prev, 2) if last is not None and prev is not None else None
    window_delta = round(last - first, 2) if last is not None and first is not None else None

    return {
        "last": last,
        "prev": prev,
        "delta": delta,
        "direction": _direction(delta),
        "window_delta": window_delta,
        "window_direction": _direction(window_delta),
    }


class AgentScoringService:

    def __init__(self, db: AsyncSession, scoring_client=None):
        self._db = db
        self._client = scoring_client
        self._directory = DirectoryRepository(db)
        self._scores = ScoreRepository(db)

    async def score_agent(self, agent_id: str, window_size: int, caller_id: str) -> AgentScoreResult:
        """
        Score one agent now and persist the snapshot + history point.

        Raises:
            NotFound: agent not owned by caller
            InvalidWindowSize: window outside MIN..MAX_WINDOW_SIZE
            ScoringError subclasses: InsufficientData, NonJsonOutput,
                SchemaViolation, ScoringTimeout, ConfigurationError
        """
        if not await self._directory.owns_agent(agent_id, caller_id):
            raise NotFound("Agent not found")
        window_size = validate_window_size(window_size)
        self._client.ensure_configured()

        try:
            outcome = await asyncio.wait_for(
                self._score(agent_id, window_size), timeout=settings.TASK_TIMEOUT
            )
        except ScoringError:
            raise
        except Exception as e:
            raise to_scoring_error(e) from e

        snapshot = self._scores.add_result(
            agent_id, window_size, outcome.parsed, repaired=outcome.used_repair
        )
        await self._db.commit()
        logger.info(
            f"Agent {agent_id} scored, overall={outcome.parsed.overall_score:g}"
            f"{' (repaired)' if outcome.used_repair else ''}"
        )
        return AgentScoreResult(outcome=outcome, snapshot=snapshot)

    async def _score(self, agent_id: str, window_size: int) -> ScoreOutcome:
        items = await WindowFetcher(self._db).fetch(agent_id, window_size)
        prompt = build_scoring_prompt(agent_id, window_size, items)
        return await score_with_repair(self._client, prompt)

    async def history(self, agent_id: str, caller_id: str, limit: int = 30) -> dict:
        if not MIN_HISTORY_LIMIT <= limit <= MAX_HISTORY_LIMIT:
            raise InvalidLimit(f"Invalid limit ({MIN_HISTORY_LIMIT}..{MAX_HISTORY_LIMIT})")
        if not await self._directory.owns_agent(agent_id, caller_id):
            raise NotFound("Agent not found")

        rows = await self._scores.recent_history(agent_id, limit)
        points = [
            {"t": r.created_at, "score": float(r.score), "window_size": r.window_size}
            for r in rows
        ]
        return {
            "agent_id": agent_id,
            "count": len(points),
            **summarize_trend(points),
            "points": points,
        }
