"""Unit tests for the intent dependency graph analysis.

Covers graph construction, cycle detection, critical path, bottlenecks,
orphans, status distribution and the analyzer's result views.
"""

import copy
from unittest.mock import patch

import pytest

import pathmode_mcp.graph as graph_module
from pathmode_mcp.errors import DuplicateIntentError
from pathmode_mcp.graph import (
    AnalysisKind,
    DependencyGraph,
    IntentGraphAnalyzer,
    critical_path,
    find_bottlenecks,
    find_cycles,
    find_orphans,
    status_distribution,
)
from pathmode_mcp.models import DEPENDS_ON, Intent, IntentStatus, Relation


def make_intent(intent_id, status="draft", depends_on=(), relations=(), user_goal=None):
    """Build an intent with ``depends_on`` targets plus extra ``(target, type)`` relations."""
    rels = [Relation(target, DEPENDS_ON) for target in depends_on]
    rels.extend(Relation(target, rel_type) for target, rel_type in relations)
    return Intent(
        id=intent_id,
        status=IntentStatus(status),
        user_goal=user_goal if user_goal is not None else f"Goal {intent_id}",
        relations=rels,
    )


def chain(*ids):
    """``chain("A", "B", "C")``: A depends on B, B depends on C."""
    intents = []
    for index, intent_id in enumerate(ids):
        deps = [ids[index + 1]] if index + 1 < len(ids) else []
        intents.append(make_intent(intent_id, depends_on=deps))
    return intents


class TestDependencyGraph:
    """Test cases for graph construction."""

    def test_forward_and_reverse_are_mirrored(self):
        intents = [
            make_intent("A", depends_on=["B", "C"]),
            make_intent("B", depends_on=["C"]),
            make_intent("C"),
        ]
        graph = DependencyGraph.from_intents(intents)

        assert graph.nodes == ["A", "B", "C"]
        assert graph.dependencies("A") == ["B", "C"]
        assert graph.dependents("C") == ["A", "B"]
        for source, targets in graph.forward.items():
            for target in targets:
                assert source in graph.reverse[target]
        assert graph.edge_count == 3

    def test_dangling_targets_are_dropped(self):
        graph = DependencyGraph.from_intents([make_intent("A", depends_on=["missing"])])

        assert graph.dependencies("A") == []
        assert "missing" not in graph.reverse

    def test_non_dependency_relations_are_ignored(self):
        intents = [
            make_intent("A", relations=[("B", "relates_to"), ("B", "enables")]),
            make_intent("B"),
        ]
        graph = DependencyGraph.from_intents(intents)

        assert graph.edge_count == 0

    def test_repeated_dependency_counts_once(self):
        intents = [make_intent("A", depends_on=["B", "B"]), make_intent("B")]
        graph = DependencyGraph.from_intents(intents)

        assert graph.dependencies("A") == ["B"]
        assert graph.dependents("B") == ["A"]

    def test_self_loop_is_kept(self):
        graph = DependencyGraph.from_intents([make_intent("A", depends_on=["A"])])

        assert graph.dependencies("A") == ["A"]
        assert graph.dependents("A") == ["A"]

    def test_duplicate_ids_fail_fast(self):
        intents = [make_intent("A"), make_intent("B"), make_intent("A")]

        with pytest.raises(DuplicateIntentError, match="Duplicate intent ids: A") as excinfo:
            DependencyGraph.from_intents(intents)
        assert excinfo.value.duplicate_ids == ["A"]


class TestCycleDetection:
    """Test cases for find_cycles."""

    def test_acyclic_graph_has_no_cycles(self):
        assert find_cycles(DependencyGraph.from_intents(chain("A", "B", "C"))) == []

    def test_three_cycle_reported_once(self):
        intents = [
            make_intent("A", depends_on=["B"]),
            make_intent("B", depends_on=["C"]),
            make_intent("C", depends_on=["A"]),
        ]
        cycles = find_cycles(DependencyGraph.from_intents(intents))

        assert cycles == [["A", "B", "C", "A"]]

    def test_self_loop_is_a_cycle(self):
        cycles = find_cycles(DependencyGraph.from_intents([make_intent("A", depends_on=["A"])]))

        assert cycles == [["A", "A"]]

    def test_each_back_edge_yields_its_own_cycle(self):
        # B closes two loops back to A: B -> A directly and B -> C -> A.
        intents = [
            make_intent("A", depends_on=["B"]),
            make_intent("B", depends_on=["A", "C"]),
            make_intent("C", depends_on=["A"]),
        ]
        cycles = find_cycles(DependencyGraph.from_intents(intents))

        assert cycles == [["A", "B", "A"], ["A", "B", "C", "A"]]

    def test_cycle_in_second_component(self):
        intents = [
            make_intent("X"),
            make_intent("A", depends_on=["B"]),
            make_intent("B", depends_on=["A"]),
        ]
        cycles = find_cycles(DependencyGraph.from_intents(intents))

        assert cycles == [["A", "B", "A"]]

    def test_shared_dependency_is_not_a_cycle(self):
        intents = [
            make_intent("A", depends_on=["B", "C"]),
            make_intent("B", depends_on=["C"]),
            make_intent("C"),
        ]
        assert find_cycles(DependencyGraph.from_intents(intents)) == []

    def test_long_chain_does_not_recurse(self):
        ids = [f"n{i}" for i in range(5000)]
        graph = DependencyGraph.from_intents(chain(*ids))

        assert find_cycles(graph) == []
        assert len(critical_path(graph)) == 5000


class TestCriticalPath:
    """Test cases for critical_path."""

    def test_linear_chain_runs_root_first(self):
        graph = DependencyGraph.from_intents(chain("A", "B", "C"))

        assert critical_path(graph) == ["C", "B", "A"]

    def test_no_edges_gives_first_single_node(self):
        graph = DependencyGraph.from_intents([make_intent("A"), make_intent("B")])

        assert critical_path(graph) == ["A"]

    def test_cycle_gives_empty_path(self):
        intents = [make_intent("A", depends_on=["B"]), make_intent("B", depends_on=["A"])]
        graph = DependencyGraph.from_intents(intents)

        assert critical_path(graph) == []

    def test_precomputed_cycles_are_respected(self):
        graph = DependencyGraph.from_intents(chain("A", "B"))

        assert critical_path(graph, cycles=[["A", "A"]]) == []

    def test_diamond_takes_first_branch(self):
        intents = [
            make_intent("A"),
            make_intent("B", depends_on=["A"]),
            make_intent("C", depends_on=["A"]),
            make_intent("D", depends_on=["B", "C"]),
            make_intent("E", depends_on=["D"]),
        ]
        graph = DependencyGraph.from_intents(intents)

        assert critical_path(graph) == ["A", "B", "D", "E"]

    def test_tie_on_length_follows_input_order(self):
        intents = [
            make_intent("Y"),
            make_intent("X", depends_on=["Y"]),
            make_intent("Q"),
            make_intent("P", depends_on=["Q"]),
        ]
        graph = DependencyGraph.from_intents(intents)

        assert critical_path(graph) == ["Y", "X"]

    def test_longer_branch_wins(self):
        intents = [
            make_intent("A", depends_on=["B", "Z"]),
            make_intent("Z"),
            make_intent("B", depends_on=["C"]),
            make_intent("C"),
        ]
        graph = DependencyGraph.from_intents(intents)

        assert critical_path(graph) == ["C", "B", "A"]

    def test_empty_graph(self):
        assert critical_path(DependencyGraph.from_intents([])) == []


class TestBottlenecks:
    """Test cases for find_bottlenecks."""

    def _hub(self, dependents, status="draft"):
        intents = [make_intent("hub", status=status)]
        intents.extend(make_intent(f"d{i}", depends_on=["hub"]) for i in range(dependents))
        return intents

    def test_three_dependents_make_a_bottleneck(self):
        intents = self._hub(3)
        graph = DependencyGraph.from_intents(intents)
        bottlenecks = find_bottlenecks(graph, {i.id: i for i in intents})

        assert len(bottlenecks) == 1
        assert bottlenecks[0].id == "hub"
        assert bottlenecks[0].dependent_count == 3

    def test_two_dependents_are_not_enough(self):
        intents = self._hub(2)
        graph = DependencyGraph.from_intents(intents)

        assert find_bottlenecks(graph, {i.id: i for i in intents}) == []

    def test_dependent_count_is_exact(self):
        intents = self._hub(5)
        graph = DependencyGraph.from_intents(intents)

        assert find_bottlenecks(graph, {i.id: i for i in intents})[0].dependent_count == 5

    @pytest.mark.parametrize(
        "status, severity",
        [
            ("draft", "critical"),
            ("validated", "critical"),
            ("approved", "warning"),
            ("shipped", "warning"),
            ("verified", "warning"),
        ],
    )
    def test_severity_follows_status(self, status, severity):
        intents = self._hub(3, status=status)
        graph = DependencyGraph.from_intents(intents)

        assert find_bottlenecks(graph, {i.id: i for i in intents})[0].severity == severity


class TestOrphans:
    """Test cases for find_orphans."""

    def test_isolated_intent_is_orphan(self):
        intents = [make_intent("A"), make_intent("B", depends_on=["C"]), make_intent("C")]

        assert find_orphans(intents) == ["A"]

    def test_incoming_relates_to_prevents_orphan(self):
        intents = [make_intent("A", relations=[("B", "relates_to")]), make_intent("B")]

        assert find_orphans(intents) == []

    def test_outgoing_dangling_relation_prevents_orphan(self):
        assert find_orphans([make_intent("A", depends_on=["gone"])]) == []


class TestStatusDistribution:
    """Test cases for status_distribution."""

    def test_all_statuses_present_and_zero_filled(self):
        intents = [make_intent("A", status="draft"), make_intent("B", status="draft"), make_intent("C", status="shipped")]
        distribution = status_distribution(intents)

        assert list(distribution) == ["draft", "validated", "approved", "shipped", "verified"]
        assert distribution == {"draft": 2, "validated": 0, "approved": 0, "shipped": 1, "verified": 0}
        assert sum(distribution.values()) == len(intents)

    def test_empty_input(self):
        assert set(status_distribution([]).values()) == {0}


class TestIntentGraphAnalyzer:
    """Test cases for the analyzer views."""

    @pytest.fixture
    def intents(self):
        return [
            make_intent("core", status="draft", user_goal="Core API"),
            make_intent("ui", status="approved", depends_on=["core"], user_goal="Dashboard"),
            make_intent("cli", status="approved", depends_on=["core"], user_goal="CLI"),
            make_intent("sdk", status="shipped", depends_on=["core", "cli"], user_goal="SDK"),
            make_intent("docs", status="verified", relations=[("sdk", "relates_to")], user_goal="Docs"),
            make_intent("lonely", status="validated", user_goal=""),
        ]

    def test_status_view(self, intents):
        result = IntentGraphAnalyzer(intents).analyze("status")

        assert result["total"] == 6
        assert result["statusDistribution"]["approved"] == 2

    def test_critical_path_view(self, intents):
        result = IntentGraphAnalyzer(intents).analyze(AnalysisKind.CRITICAL_PATH)

        assert [step["id"] for step in result["criticalPath"]] == ["core", "cli", "sdk"]
        assert result["length"] == 3
        assert result["criticalPath"][0] == {"id": "core", "userGoal": "Core API", "status": "draft"}

    def test_full_view(self, intents):
        result = IntentGraphAnalyzer(intents).analyze("full")

        assert result["summary"]["total"] == 6
        assert result["cycles"] == []
        assert result["bottlenecks"] == [
            {"id": "core", "userGoal": "Core API", "dependentCount": 3, "status": "draft"}
        ]
        assert result["orphanCount"] == 1

    def test_risks_view_for_draft_bottleneck(self, intents):
        risks = IntentGraphAnalyzer(intents).analyze("risks")["risks"]

        assert risks == [
            {
                "type": "bottleneck",
                "severity": "critical",
                "message": '"Core API" blocks 3 intents and is still draft',
            }
        ]

    def test_risks_view_for_shipped_bottleneck(self):
        intents = [make_intent("hub", status="shipped", user_goal="Hub")]
        intents.extend(make_intent(f"d{i}", depends_on=["hub"]) for i in range(3))
        risks = IntentGraphAnalyzer(intents).analyze("risks")["risks"]

        assert risks == [{"type": "bottleneck", "severity": "warning", "message": '"Hub" blocks 3 intents'}]

    def test_cycle_views(self):
        intents = [
            make_intent("A", depends_on=["B"], user_goal="Alpha"),
            make_intent("B", depends_on=["C"], user_goal="Beta"),
            make_intent("C", depends_on=["A"], user_goal=""),
        ]
        analyzer = IntentGraphAnalyzer(intents)

        full = analyzer.analyze("full")
        assert full["cycles"] == [
            [{"id": "A", "userGoal": "Alpha"}, {"id": "B", "userGoal": "Beta"}, {"id": "C", "userGoal": "Untitled"}]
        ]
        assert full["criticalPath"] == []

        risks = analyzer.analyze("risks")["risks"]
        assert risks == [
            {"type": "cycle", "severity": "critical", "message": "Circular dependency: Alpha → Beta → Untitled"}
        ]
        assert analyzer.analyze("critical-path") == {"criticalPath": [], "length": 0}

    def test_missing_user_goal_is_untitled(self, intents):
        result = IntentGraphAnalyzer(intents).analyze("critical-path")
        lonely = IntentGraphAnalyzer([intents[-1]]).analyze("critical-path")

        assert result["length"] == 3
        assert lonely["criticalPath"] == [{"id": "lonely", "userGoal": "Untitled", "status": "validated"}]

    def test_empty_input_gives_zero_results(self):
        result = IntentGraphAnalyzer([]).analyze("full")

        assert result["summary"]["total"] == 0
        assert result["criticalPath"] == []
        assert result["orphanCount"] == 0

    def test_unknown_kind_raises(self, intents):
        with pytest.raises(ValueError):
            IntentGraphAnalyzer(intents).analyze("everything")

    def test_duplicate_ids_raise(self):
        with pytest.raises(DuplicateIntentError):
            IntentGraphAnalyzer([make_intent("A"), make_intent("A")])

    def test_analysis_is_idempotent_and_pure(self, intents):
        snapshot = copy.deepcopy(intents)
        analyzer = IntentGraphAnalyzer(intents)

        first = analyzer.analyze("full")
        second = analyzer.analyze("full")

        assert first == second
        assert first is not second
        assert intents == snapshot

    def test_graph_is_built_and_checked_once(self, intents):
        with patch("pathmode_mcp.graph._ensure_unique", wraps=graph_module._ensure_unique) as ensure_unique:
            analyzer = IntentGraphAnalyzer(intents)
            for kind in AnalysisKind:
                analyzer.analyze(kind)

        assert ensure_unique.call_count == 1
        assert analyzer.graph.dependents("core") == ["ui", "cli", "sdk"]
