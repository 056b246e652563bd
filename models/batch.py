"""
Batch ORM models — the "batch_jobs" and "batch_tasks" tables.

Key design decisions:
- One BatchJob owns N BatchTasks, created together in a single fan-out.
  Deleting a job cascades to its tasks (ON DELETE CASCADE + ORM cascade).
- BatchJob.total is written once at creation and never updated.
- BatchJob.progress is only a cache of count(tasks where status='done');
  every reader that needs real numbers recomputes from batch_tasks.
- window_size is copied onto every task so running a task never re-reads the job.
- (job_id, status, created_at) is indexed because the claim query filters on
  the first two and orders by the third.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow
from models.enums import JobStatus, TaskStatus


class BatchJob(Base):
    __tablename__ = "batch_jobs"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    scope: Mapped[str] = mapped_column(String(10), nullable=False)
    ref_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    window_size: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)

    # ── Progress ────────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.QUEUED.value, nullable=False, index=True
    )
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_requested: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # ── Timestamps ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    tasks: Mapped[list["BatchTask"]] = relationship(
        back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<BatchJob {self.id} [{self.scope}:{self.ref_id}] {self.status}>"


class BatchTask(Base):
    __tablename__ = "batch_tasks"
    __table_args__ = (
        Index("ix_batch_tasks_claim", "job_id", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("batch_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    agent_id: Mapped[str] = mapped_column(String(64), nullable=False)
    window_size: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=TaskStatus.QUEUED.value, nullable=False
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    repaired: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    job: Mapped[BatchJob] = relationship(back_populates="tasks")

    def __repr__(self) -> str:
        return f"<BatchTask {self.id} agent={self.agent_id} {self.status}>"
