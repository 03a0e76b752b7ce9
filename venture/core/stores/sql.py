# venture/core/stores/sql.py
"""SQLAlchemy-backed WorkflowStore (PostgreSQL via psycopg, or SQLite)."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import create_engine, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from venture.core.logging import get_logger
from venture.core.models.store import StoreConfig
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.models.workflow_pg import Base, WorkflowJobModel, WorkflowModel
from venture.core.types.status import JobStatus
from venture.core.utils.url import mask_database_url


def _is_in_memory_sqlite(url: str) -> bool:
    database = make_url(url).database
    return not database or database == ':memory:' or 'mode=memory' in url


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; everything venture writes is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _workflow_from_row(row: WorkflowModel) -> WorkflowInstance:
    return WorkflowInstance(
        id=row.id,
        name=row.name,
        job_count=row.job_count,
        jobs_processed=row.jobs_processed,
        jobs_failed=row.jobs_failed,
        finished_job_ids=list(row.finished_job_ids or []),
        created_at=_aware(row.created_at),
        finished_at=_aware(row.finished_at),
        cancelled_at=_aware(row.cancelled_at),
        entity_type=row.entity_type,
        entity_id=row.entity_id,
    )


def _job_from_row(row: WorkflowJobModel) -> JobRunState:
    return JobRunState(
        job_id=row.job_id,
        name=row.name,
        job_type=row.job_type,
        position=row.position,
        dependencies=list(row.dependencies or []),
        gated=row.gated,
        queue=row.queue,
        connection=row.connection,
        delay=row.delay,
        status=JobStatus(row.status),
        started_at=_aware(row.started_at),
        gated_at=_aware(row.gated_at),
        finished_at=_aware(row.finished_at),
        failed_at=_aware(row.failed_at),
        exception=row.exception,
    )


def _workflow_columns(workflow: WorkflowInstance) -> dict[str, Any]:
    return {
        'name': workflow.name,
        'job_count': workflow.job_count,
        'jobs_processed': workflow.jobs_processed,
        'jobs_failed': workflow.jobs_failed,
        'finished_job_ids': list(workflow.finished_job_ids),
        'created_at': workflow.created_at,
        'finished_at': workflow.finished_at,
        'cancelled_at': workflow.cancelled_at,
        'entity_type': workflow.entity_type,
        'entity_id': workflow.entity_id,
    }


def _job_columns(job: JobRunState) -> dict[str, Any]:
    return {
        'name': job.name,
        'job_type': job.job_type,
        'position': job.position,
        'dependencies': list(job.dependencies),
        'gated': job.gated,
        'queue': job.queue,
        'connection': job.connection,
        'delay': job.delay,
        'status': job.status.value,
        'started_at': job.started_at,
        'gated_at': job.gated_at,
        'finished_at': job.finished_at,
        'failed_at': job.failed_at,
        'exception': job.exception,
    }


class SqlAlchemyWorkflowStore:
    """
    WorkflowStore persisting to ``venture_workflows`` / ``venture_workflow_jobs``.

    Every call runs in its own short transaction; the engine serialises
    writes per workflow, so rows are simply overwritten with the latest state.
    On SQLite, which allows a single writer, sessions from different threads
    are serialised by the store.
    """

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self.logger = get_logger('store')

        self._serialize: AbstractContextManager[Any] = nullcontext()
        if config.is_sqlite:
            sqlite_args: dict[str, Any] = {
                'echo': config.echo,
                'connect_args': {'check_same_thread': False},
            }
            if _is_in_memory_sqlite(config.database_url):
                # An in-memory database lives exactly as long as its connection
                sqlite_args['poolclass'] = StaticPool
            self.engine = create_engine(config.database_url, **sqlite_args)
            self._serialize = threading.RLock()
        else:
            engine_cfg = config.model_dump(exclude={'database_url'}, exclude_none=True)
            self.engine = create_engine(config.database_url, **engine_cfg)
        self.session_factory = sessionmaker(self.engine, expire_on_commit=False)

        self.logger.info(
            f'SqlAlchemyWorkflowStore initialized ({mask_database_url(config.database_url)})'
        )

    def ensure_schema(self) -> None:
        """Create the workflow tables if they do not exist."""
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._serialize, self.session_factory() as session:
            yield session

    def create(self, workflow: WorkflowInstance, jobs: list[JobRunState]) -> None:
        with self._session() as session, session.begin():
            session.add(WorkflowModel(id=workflow.id, **_workflow_columns(workflow)))
            # Parent row must exist before the FK'd job rows
            session.flush()
            for job in jobs:
                session.add(
                    WorkflowJobModel(
                        workflow_id=workflow.id, job_id=job.job_id, **_job_columns(job)
                    )
                )

    def save_workflow(self, workflow: WorkflowInstance) -> None:
        with self._session() as session, session.begin():
            row = session.get(WorkflowModel, workflow.id)
            if row is None:
                session.add(WorkflowModel(id=workflow.id, **_workflow_columns(workflow)))
                return
            for key, value in _workflow_columns(workflow).items():
                setattr(row, key, value)

    def save_job(self, workflow_id: str, job: JobRunState) -> None:
        with self._session() as session, session.begin():
            row = session.get(WorkflowJobModel, (workflow_id, job.job_id))
            if row is None:
                session.add(
                    WorkflowJobModel(workflow_id=workflow_id, job_id=job.job_id, **_job_columns(job))
                )
                return
            for key, value in _job_columns(job).items():
                setattr(row, key, value)

    def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        with self._session() as session:
            row = session.get(WorkflowModel, workflow_id)
            return _workflow_from_row(row) if row is not None else None

    def get_jobs(self, workflow_id: str) -> list[JobRunState]:
        with self._session() as session:
            rows = session.scalars(
                select(WorkflowJobModel).where(WorkflowJobModel.workflow_id == workflow_id)
                .order_by(WorkflowJobModel.position)
            ).all()
            return [_job_from_row(row) for row in rows]

    def find_by_entity(self, entity_type: str, entity_id: str) -> list[WorkflowInstance]:
        with self._session() as session:
            rows = session.scalars(
                select(WorkflowModel)
                .where(WorkflowModel.entity_type == entity_type)
                .where(WorkflowModel.entity_id == entity_id)
            ).all()
            return [_workflow_from_row(row) for row in rows]
