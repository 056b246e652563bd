"""
Reads the recent conversation window of one agent and shapes it into the AI payload.

For each of the newest `window_size` conversations (newest first):
    - report_json present and valid JSON → embed the parsed report
    - otherwise → embed the first settings.EXCERPT_CHARS of the transcript

Reports are already summaries, so preferring them keeps the prompt small no
matter how long the raw transcripts are.

Example item:
    {"conversation_id": "c-17", "created_at": "2025-03-02T10:15:00",
     "report": {"sentiment": "negative", "resolved": false}}
"""

import asyncio
import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.directory import Conversation
from scoring.errors import InsufficientData, ScoringTimeout

logger = logging.getLogger(__name__)


class WindowFetcher:

    def __init__(self, db: AsyncSession, min_records: int | None = None):
        self._db = db
        self._min_records = min_records or settings.MIN_RECORDS

    async def fetch(self, agent_id: str, window_size: int) -> list[dict]:
        """
        Read the window for one agent.

        Raises:
            InsufficientData: fewer than min_records conversations exist.
            ScoringTimeout: the read exceeded settings.STORE_READ_TIMEOUT.
        """
        try:
            rows = await asyncio.wait_for(
                self._read_recent(agent_id, window_size),
                timeout=settings.STORE_READ_TIMEOUT,
            )
        except asyncio.TimeoutError:
            raise ScoringTimeout(
                f"conversation store read exceeded {settings.STORE_READ_TIMEOUT:g}s"
            ) from None

        if len(rows) < self._min_records:
            raise InsufficientData(agent_id, len(rows), self._min_records)

        return [self._to_item(row) for row in rows]

    async def _read_recent(self, agent_id: str, window_size: int) -> list[Conversation]:
        query = (
            select(Conversation)
            .where(Conversation.agent_id == agent_id)
            .order_by(Conversation.created_at.desc(), Conversation.id.desc())
            .limit(window_size)
        )
        result = await self._db.execute(query)
        return list(result.scalars().all())

    def _to_item(self, conv: Conversation) -> dict:
        item = {
            "conversation_id": conv.id,
            "created_at": conv.created_at.isoformat() if conv.created_at else None,
        }
        report = _parse_report(conv.report_json)
        if report is not None:
            item["report"] = report
        else:
            item["transcript_excerpt"] = (conv.transcript or "")[: settings.EXCERPT_CHARS]
        return item


def _parse_report(raw: str | None):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Ignoring unparseable report_json, falling back to transcript")
        return None
