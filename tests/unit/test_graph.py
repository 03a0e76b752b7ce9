"""Unit tests for Graph: ordering, traversal, groups and cycle detection."""

from __future__ import annotations

import pytest

from venture.core.errors import (
    CycleDetectedError,
    DefinitionSealedError,
    DuplicateJobError,
    InvalidJobIdError,
    JobNotFoundError,
    UnresolvableDependencyError,
)
from venture.core.models.graph import Graph
from venture.core.models.jobs import JobNode

pytestmark = pytest.mark.unit


def _node(job_id: str, *deps: str) -> JobNode:
    return JobNode(id=job_id, payload=None, dependencies=frozenset(deps))


def _diamond() -> Graph:
    graph = Graph()
    graph.add(_node('a'))
    graph.add(_node('b', 'a'))
    graph.add(_node('c', 'a'))
    graph.add(_node('d', 'b', 'c'))
    return graph


class TestJobNode:
    def test_name_defaults_to_id(self) -> None:
        assert _node('a').name == 'a'
        assert JobNode(id='a', payload=None, name='Alpha').name == 'Alpha'

    def test_is_root(self) -> None:
        assert _node('a').is_root
        assert not _node('b', 'a').is_root


class TestGraphQueries:
    def test_insertion_order_preserved(self) -> None:
        graph = _diamond()
        assert graph.ids() == ['a', 'b', 'c', 'd']
        assert [node.id for node in graph] == ['a', 'b', 'c', 'd']
        assert len(graph) == 4
        assert 'c' in graph

    def test_roots_dependents_terminals(self) -> None:
        graph = _diamond()
        assert [n.id for n in graph.roots()] == ['a']
        assert [n.id for n in graph.dependents('a')] == ['b', 'c']
        assert [n.id for n in graph.terminals()] == ['d']

    def test_descendants_and_ancestors(self) -> None:
        graph = _diamond()
        assert graph.descendants('a') == {'b', 'c', 'd'}
        assert graph.descendants('d') == set()
        assert graph.ancestors('d') == {'a', 'b', 'c'}
        assert graph.ancestors('a') == set()

    def test_get_unknown_raises(self) -> None:
        with pytest.raises(JobNotFoundError):
            _diamond().get('missing')

    def test_topological_order_breaks_ties_by_insertion(self) -> None:
        graph = Graph()
        graph.add(_node('x'))
        graph.add(_node('y'))
        graph.add(_node('z', 'y'))
        assert graph.topological_order() == ['x', 'y', 'z']


class TestGraphMutation:
    def test_duplicate_id_rejected(self) -> None:
        graph = _diamond()
        with pytest.raises(DuplicateJobError):
            graph.add(_node('a'))

    def test_unknown_dependency_rejected(self) -> None:
        graph = Graph()
        with pytest.raises(UnresolvableDependencyError):
            graph.add(_node('b', 'a'))
        assert len(graph) == 0

    @pytest.mark.parametrize('job_id', ['', '   ', 'x' * 256])
    def test_invalid_ids_rejected(self, job_id: str) -> None:
        with pytest.raises(InvalidJobIdError):
            Graph().add(_node(job_id))

    def test_frozen_graph_rejects_changes(self) -> None:
        graph = _diamond().freeze()
        assert graph.is_frozen
        with pytest.raises(DefinitionSealedError):
            graph.add(_node('e'))
        with pytest.raises(DefinitionSealedError):
            graph.extend_dependencies('d', ['a'])

    def test_extend_dependencies_creates_cycle_detected_on_freeze(self) -> None:
        graph = _diamond()
        graph.extend_dependencies('a', ['d'])
        assert graph.get('a').dependencies == frozenset({'d'})
        with pytest.raises(CycleDetectedError) as exc_info:
            graph.freeze()
        assert 'a' in str(exc_info.value)
        assert not graph.is_frozen

    def test_freeze_without_cycle_check(self) -> None:
        graph = _diamond()
        graph.extend_dependencies('a', ['d'])
        graph.freeze(check_cycles=False)
        assert graph.is_frozen


class TestGraphMerge:
    def test_merge_prefixes_and_groups(self) -> None:
        parent = Graph()
        parent.add(_node('setup'))

        terminals = parent.merge(_diamond(), 'inner', ['setup'])

        assert terminals == frozenset({'inner.d'})
        assert parent.ids() == ['setup', 'inner.a', 'inner.b', 'inner.c', 'inner.d']
        assert parent.get('inner.a').dependencies == frozenset({'setup'})
        assert parent.get('inner.d').dependencies == frozenset({'inner.b', 'inner.c'})
        assert parent.has('inner')
        assert 'inner' not in parent
        assert parent.resolve('inner') == frozenset({'inner.d'})

    def test_merge_group_collides_with_job(self) -> None:
        parent = Graph()
        parent.add(_node('inner'))
        with pytest.raises(DuplicateJobError):
            parent.merge(_diamond(), 'inner')

    def test_nested_groups_are_reprefixed(self) -> None:
        middle = Graph()
        middle.merge(_diamond(), 'leaf')
        outer = Graph()
        outer.merge(middle, 'mid')
        assert outer.resolve('mid.leaf') == frozenset({'mid.leaf.d'})
        assert outer.resolve('mid') == frozenset({'mid.leaf.d'})

    def test_resolve_unknown(self) -> None:
        with pytest.raises(UnresolvableDependencyError):
            Graph().resolve('ghost')
