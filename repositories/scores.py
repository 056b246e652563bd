"""
Score repository: snapshots and history points.

Both tables are insert-only. add_result() only STAGES the two rows; they are
committed by whatever commits the task transition next (TaskRepository.finish),
so a task is never "done" without its snapshot, and a snapshot never lands
for a task that couldn't be marked done.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.score import AgentScore, AgentScoreHistory
from scoring.validator import ValidatedScore


class ScoreRepository:

    def __init__(self, db: AsyncSession):
        self._db = db

    def add_result(
        self,
        agent_id: str,
        window_size: int,
        score: ValidatedScore,
        repaired: bool = False,
        job_id: uuid.UUID | None = None,
    ) -> AgentScore:
        now = utcnow()
        snapshot = AgentScore(
            id=uuid.uuid4(),
            agent_id=agent_id,
            window_size=window_size,
            job_id=job_id,
            overall_score=score.overall_score,
            communication_score=score.communication_score,
            conversion_score=score.conversion_score,
            risk_score=score.risk_score,
            coaching_priority=score.coaching_priority,
            strengths=list(score.strengths),
            weaknesses=list(score.weaknesses),
            key_patterns=list(score.key_patterns),
            repaired=repaired,
            created_at=now,
        )
        point = AgentScoreHistory(
            agent_id=agent_id,
            score=score.overall_score,
            window_size=window_size,
            created_at=now,
        )
        self._db.add_all([snapshot, point])
        return snapshot

    async def recent_history(self, agent_id: str, limit: int) -> list[AgentScoreHistory]:
        """Newest `limit` points, returned oldest → newest (chart order)."""
        query = (
            select(AgentScoreHistory)
            .where(AgentScoreHistory.agent_id == agent_id)
            .order_by(AgentScoreHistory.created_at.desc(), AgentScoreHistory.id.desc())
            .limit(limit)
        )
        result = await self._db.execute(query)
        rows = list(result.scalars().all())
        rows.reverse()
        return rows
