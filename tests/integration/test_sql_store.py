"""Integration tests for SqlAlchemyWorkflowStore and the engine running on it."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from venture.core.engine import WorkflowEngine
from venture.core.executors.threads import ThreadPoolJobExecutor
from venture.core.models.config import VentureConfig
from venture.core.models.store import StoreConfig
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.plugins.entity import EntityAwareWorkflows
from venture.core.stores.sql import SqlAlchemyWorkflowStore, _is_in_memory_sqlite
from venture.core.testing import ManualExecutor
from venture.core.types.status import JobStatus

pytestmark = [pytest.mark.integration]


def _job(label: str) -> Any:
    return lambda: label


def _workflow(workflow_id: str = 'wf-1', **overrides: Any) -> WorkflowInstance:
    fields: dict[str, Any] = {
        'id': workflow_id,
        'name': 'podcast',
        'job_count': 2,
        'created_at': datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return WorkflowInstance(**fields)


def _jobs() -> list[JobRunState]:
    return [
        JobRunState(job_id='process', name='Process', job_type='app.Process', position=0),
        JobRunState(
            job_id='release',
            name='Release',
            job_type='app.Release',
            position=1,
            dependencies=['process'],
            gated=True,
            queue='default',
            delay=30.0,
        ),
    ]


class TestSqlAlchemyWorkflowStore:
    def test_create_and_read_back(self, store: SqlAlchemyWorkflowStore) -> None:
        store.create(_workflow(), _jobs())

        workflow = store.get_workflow('wf-1')
        assert workflow is not None
        assert workflow.name == 'podcast'
        assert workflow.job_count == 2
        assert workflow.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert workflow.finished_at is None

        jobs = store.get_jobs('wf-1')
        assert [job.job_id for job in jobs] == ['process', 'release']
        release = jobs[1]
        assert release.dependencies == ['process']
        assert release.gated is True
        assert release.delay == 30.0
        assert release.status is JobStatus.PENDING

    def test_unknown_workflow(self, store: SqlAlchemyWorkflowStore) -> None:
        assert store.get_workflow('missing') is None
        assert store.get_jobs('missing') == []

    def test_save_overwrites(self, store: SqlAlchemyWorkflowStore) -> None:
        store.create(_workflow(), _jobs())
        finished_at = datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)

        store.save_workflow(
            _workflow(jobs_processed=1, finished_job_ids=['process'], finished_at=finished_at)
        )
        job = _jobs()[0]
        job.status = JobStatus.FAILED
        job.exception = {'type': 'ValueError', 'message': 'bad', 'traceback': ''}
        store.save_job('wf-1', job)

        workflow = store.get_workflow('wf-1')
        assert workflow is not None
        assert workflow.jobs_processed == 1
        assert workflow.finished_job_ids == ['process']
        assert workflow.finished_at == finished_at
        saved = store.get_jobs('wf-1')[0]
        assert saved.status is JobStatus.FAILED
        assert saved.exception == {'type': 'ValueError', 'message': 'bad', 'traceback': ''}

    def test_find_by_entity(self, store: SqlAlchemyWorkflowStore) -> None:
        store.create(_workflow('wf-1', entity_type='User', entity_id='1'), [])
        store.create(_workflow('wf-2', entity_type='User', entity_id='2'), [])
        store.create(_workflow('wf-3', entity_type='User', entity_id='1'), [])

        found = store.find_by_entity('User', '1')
        assert sorted(w.id for w in found) == ['wf-1', 'wf-3']
        assert store.find_by_entity('Team', '1') == []


class TestEngineOnSqlStore:
    def test_example_scenario_persisted(self, store: SqlAlchemyWorkflowStore) -> None:
        executor = ManualExecutor()
        engine = WorkflowEngine(store, executor)
        definition = engine.define('example')
        definition.add_job(_job('A'), id='A')
        definition.add_job(_job('B'), id='B')
        definition.add_job(_job('C'), ['A', 'B'], id='C')
        definition.add_job(_job('D'), ['A'], id='D')
        handle = engine.start(definition)

        executor.finish('A')
        executor.fail('B', ValueError('boom'))
        executor.finish('D')

        statuses = {job.job_id: job.status for job in handle.jobs()}
        assert statuses == {
            'A': JobStatus.FINISHED,
            'B': JobStatus.FAILED,
            'C': JobStatus.PENDING,
            'D': JobStatus.FINISHED,
        }
        assert handle.job('B').exception['message'] == 'boom'
        assert handle.workflow().finished_job_ids == ['A', 'D']
        assert not handle.has_ran()
        assert not handle.is_finished()

    def test_gated_and_cancel_persisted(self, store: SqlAlchemyWorkflowStore) -> None:
        executor = ManualExecutor()
        engine = WorkflowEngine(store, executor, plugins=[EntityAwareWorkflows()])
        definition = engine.define('gated').for_entity(_Owner(5))
        definition.add_job(_job('a'), id='a')
        definition.add_gated_job(_job('g'), ['a'], id='g')
        handle = engine.start(definition)

        executor.finish('a')
        assert handle.job('g').status is JobStatus.GATED
        assert handle.job('g').gated_at is not None

        assert handle.cancel() is True
        assert handle.is_cancelled()
        assert handle.workflow().cancelled_at.tzinfo is not None
        assert [h.workflow_id for h in EntityAwareWorkflows.workflows_for(engine, _Owner(5))] == [
            handle.workflow_id
        ]

    def test_engine_builds_store_from_config(self) -> None:
        config = VentureConfig(store=StoreConfig(database_url='sqlite://'))
        engine = WorkflowEngine(executor=ManualExecutor(), config=config)
        assert isinstance(engine.store, SqlAlchemyWorkflowStore)

        definition = engine.define('configured')
        definition.add_job(_job('a'), id='a')
        handle = engine.start(definition)
        assert handle.workflow().job_count == 1
        engine.store.dispose()


class TestFileBackedSqlite:
    """A file database shared by worker threads of a ThreadPoolJobExecutor."""

    @pytest.mark.parametrize(
        ('url', 'in_memory'),
        [
            ('sqlite://', True),
            ('sqlite:///:memory:', True),
            ('sqlite:///file:shared?mode=memory&cache=shared&uri=true', True),
            ('sqlite:////tmp/venture.db', False),
            ('sqlite:///venture.db', False),
        ],
    )
    def test_in_memory_detection(self, url: str, in_memory: bool) -> None:
        assert _is_in_memory_sqlite(url) is in_memory

    @pytest.mark.slow
    def test_parallel_workflows_on_file_database(self, tmp_path: Path) -> None:
        store = SqlAlchemyWorkflowStore(
            StoreConfig(database_url=f'sqlite:///{tmp_path / "venture.db"}')
        )
        store.ensure_schema()
        executor = ThreadPoolJobExecutor(max_workers=8)
        engine = WorkflowEngine(store, executor)

        handles = []
        try:
            for n in range(20):
                definition = engine.define(f'fan-out-{n}')
                definition.add_job(_job('a'), id='a')
                branches = [
                    definition.add_job(_job(f'b{i}'), ['a'], id=f'b{i}') for i in range(6)
                ]
                definition.add_job(_job('c'), branches, id='c')
                handles.append(engine.start(definition))
            executor.join()
        finally:
            executor.shutdown()

        for handle in handles:
            assert handle.is_finished()
            assert len(handle.finished_jobs()) == 8
            assert handle.failed_jobs() == []
        assert engine.active_workflow_ids() == []
        store.dispose()


class _Owner:
    def __init__(self, owner_id: int) -> None:
        self.id = owner_id
