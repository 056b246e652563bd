"""
Seed script — writes a demo organization straight into the database.

Usage:
    python -m scripts.seed_demo --owner-id owner_1

This creates:
- 1 organization owned by --owner-id
- 2 teams with 4 agents each
- 12 conversations per agent (half with a prior report, half transcript only)
- 1 extra agent with only 3 conversations (demos an InsufficientData failure)

Then try:
    python -m scripts.drain_job --caller-id owner_1 --scope org --ref-id demo_org
"""

import argparse
import asyncio
import json
import random
from datetime import timedelta

from models.base import AsyncSessionLocal, async_engine, Base, utcnow
from models.directory import Organization, Team, Agent, Conversation
import models.batch  # noqa: F401  (create_all needs every table registered)
import models.score  # noqa: F401

TOPICS = ["billing dispute", "plan upgrade", "cancellation request", "delivery delay", "password reset"]


def _conversations(agent_id: str, count: int) -> list[Conversation]:
    now = utcnow()
    convs = []
    for i in range(count):
        topic = random.choice(TOPICS)
        report = None
        if i % 2 == 0:
            report = json.dumps({
                "topic": topic,
                "sentiment": random.choice(["positive", "neutral", "negative"]),
                "resolved": random.random() > 0.3,
            })
        convs.append(Conversation(
            id=f"{agent_id}_c{i:02d}",
            agent_id=agent_id,
            transcript=f"Customer: I need help with a {topic}.\nAgent: Sure, let me look into that for you.",
            report_json=report,
            created_at=now - timedelta(hours=i),
        ))
    return convs


async def seed(owner_id: str) -> None:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        session.add(Organization(id="demo_org", name="Demo Contact Center", owner_id=owner_id))
        for t in range(2):
            team_id = f"demo_team_{t}"
            session.add(Team(id=team_id, organization_id="demo_org", name=f"Team {t}"))
            for a in range(4):
                agent_id = f"{team_id}_agent_{a}"
                session.add(Agent(id=agent_id, team_id=team_id, name=f"Agent {t}-{a}"))
                session.add_all(_conversations(agent_id, 12))

        session.add(Agent(id="demo_team_0_new_hire", team_id="demo_team_0", name="New hire"))
        session.add_all(_conversations("demo_team_0_new_hire", 3))
        await session.commit()

    print(f"Seeded demo_org (owner {owner_id}): 2 teams, 9 agents")


def main():
    parser = argparse.ArgumentParser(description="Seed demo scoring data")
    parser.add_argument("--owner-id", type=str, required=True)
    args = parser.parse_args()
    asyncio.run(seed(args.owner_id))


if __name__ == "__main__":
    main()
