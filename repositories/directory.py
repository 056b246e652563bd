"""
Directory repository — scope resolution and ownership checks.

Every query here joins up to organizations.owner_id, so a caller can only
ever see agents, teams and orgs that belong to an organization they own.
Anything else is indistinguishable from "does not exist".
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.directory import Organization, Team, Agent
from models.enums import Scope


class DirectoryRepository:

    def __init__(self, db: AsyncSession):
        self._db = db

    async def agents_in_scope(
        self, scope: Scope, ref_id: str, caller_id: str, limit: int
    ) -> list[str]:
        """Ids of the caller-owned agents under a team or an organization."""
        query = (
            select(Agent.id)
            .join(Team, Agent.team_id == Team.id)
            .join(Organization, Team.organization_id == Organization.id)
            .where(Organization.owner_id == caller_id)
        )
        if scope == Scope.TEAM:
            query = query.where(Team.id == ref_id)
        else:
            query = query.where(Organization.id == ref_id)
        query = query.order_by(Agent.created_at, Agent.id).limit(limit)

        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def owns_scope(self, scope: Scope, ref_id: str, caller_id: str) -> bool:
        if scope == Scope.TEAM:
            query = (
                select(Team.id)
                .join(Organization, Team.organization_id == Organization.id)
                .where(Team.id == ref_id, Organization.owner_id == caller_id)
            )
        else:
            query = select(Organization.id).where(
                Organization.id == ref_id, Organization.owner_id == caller_id
            )
        result = await self._db.execute(query)
        return result.scalar_one_or_none() is not None

    async def owns_agent(self, agent_id: str, caller_id: str) -> bool:
        query = (
            select(Agent.id)
            .join(Team, Agent.team_id == Team.id)
            .join(Organization, Team.organization_id == Organization.id)
            .where(Agent.id == agent_id, Organization.owner_id == caller_id)
        )
        result = await self._db.execute(query)
        return result.scalar_one_or_none() is not None
