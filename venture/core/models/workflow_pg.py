"""SQLAlchemy models for workflow persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), 'postgresql')


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for venture models"""

    pass


class WorkflowModel(Base):
    """
    SQLAlchemy model for workflow instances.

    Tracks the counters and terminal timestamps of a workflow run:
    - job_count / jobs_processed / jobs_failed
    - finished_job_ids (ids in completion order)
    - finished_at (set once every job finished), cancelled_at (set at most once)
    - optional owning entity (EntityAwareWorkflows plugin)
    """

    __tablename__ = 'venture_workflows'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    job_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jobs_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    jobs_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    finished_job_ids: Mapped[list[str]] = mapped_column(
        JsonType, nullable=False, default=list
    )

    entity_type: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    entity_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class WorkflowJobModel(Base):
    """
    SQLAlchemy model for the jobs of a workflow run.

    Primary key is (workflow_id, job_id); job ids are only unique within
    their workflow.
    """

    __tablename__ = 'venture_workflow_jobs'

    workflow_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey('venture_workflows.id', ondelete='CASCADE'),
        primary_key=True,
    )
    job_id: Mapped[str] = mapped_column(String(255), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    job_type: Mapped[str] = mapped_column(String(512), nullable=False)
    # Insertion order within the workflow graph
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Direct dependency ids within the same workflow
    dependencies: Mapped[list[str]] = mapped_column(
        JsonType, nullable=False, default=list
    )
    gated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    queue: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    connection: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Seconds (relative) or ISO timestamp (absolute)
    delay: Mapped[Optional[Any]] = mapped_column(JsonType, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default='pending', index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    gated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # {"type", "message", "traceback"}
    exception: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonType, nullable=True)
