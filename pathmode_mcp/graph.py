"""Analysis of the intent dependency graph.

The graph is derived from ``depends_on`` relations every time an analysis
runs; nothing is cached and the input intents are never mutated. Node order
follows the order of the input sequence, which makes every traversal (and
therefore every tie-break) reproducible for a given input.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import DuplicateIntentError
from .models import Bottleneck, Intent, IntentStatus, Risk
from .pathmode_logging import log_analysis_event, log_performance

logger = logging.getLogger("pathmode.graph")

BOTTLENECK_THRESHOLD = 3

_WHITE, _GRAY, _BLACK = 0, 1, 2


class AnalysisKind(str, Enum):
    """Shapes of result produced by :meth:`IntentGraphAnalyzer.analyze`."""

    FULL = "full"
    CRITICAL_PATH = "critical-path"
    RISKS = "risks"
    STATUS = "status"


def _ensure_unique(intents: Sequence[Intent]) -> None:
    counts = Counter(intent.id for intent in intents)
    duplicates = [intent_id for intent_id, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateIntentError(duplicates)


@dataclass(slots=True)
class DependencyGraph:
    """Forward and reverse adjacency over ``depends_on`` relations.

    ``forward[a]`` lists the intents ``a`` depends on, ``reverse[b]`` the
    intents depending on ``b``. Both are insertion-ordered dicts used as sets.
    """

    nodes: List[str] = field(default_factory=list)
    forward: Dict[str, Dict[str, None]] = field(default_factory=dict)
    reverse: Dict[str, Dict[str, None]] = field(default_factory=dict)

    @classmethod
    def from_intents(cls, intents: Sequence[Intent]) -> "DependencyGraph":
        """Build the graph, dropping relations that point outside the set."""
        _ensure_unique(intents)
        graph = cls()
        for intent in intents:
            graph.nodes.append(intent.id)
            graph.forward[intent.id] = {}
            graph.reverse[intent.id] = {}

        for intent in intents:
            for target_id in intent.dependency_ids():
                if target_id not in graph.forward:
                    logger.debug(f"Ignoring dangling dependency {intent.id} -> {target_id}")
                    continue
                graph.forward[intent.id][target_id] = None
                graph.reverse[target_id][intent.id] = None
        return graph

    def dependencies(self, node: str) -> List[str]:
        return list(self.forward.get(node, ()))

    def dependents(self, node: str) -> List[str]:
        return list(self.reverse.get(node, ()))

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.forward.values())


def find_cycles(graph: DependencyGraph) -> List[List[str]]:
    """Return one closed path ``[t, ..., t]`` per back edge found.

    Depth-first search with an explicit stack and white/gray/black colouring.
    A node may sit on the stack more than once; the copy pushed last is the one
    entered, and its parent pointer is the one recorded last. Cycles reached
    through different back edges are reported separately, even when they
    cover the same nodes.
    """
    color = {node: _WHITE for node in graph.nodes}
    parent: Dict[str, Optional[str]] = {}
    cycles: List[List[str]] = []

    for start in graph.nodes:
        if color[start] != _WHITE:
            continue
        stack = [start]
        parent[start] = None
        while stack:
            node = stack[-1]
            if color[node] != _WHITE:
                color[node] = _BLACK
                stack.pop()
                continue

            color[node] = _GRAY
            for dep in graph.dependencies(node):
                if color[dep] == _WHITE:
                    parent[dep] = node
                    stack.append(dep)
                elif color[dep] == _GRAY:
                    cycle = [dep]
                    current = node
                    while current != dep:
                        cycle.append(current)
                        current = parent[current]
                    cycle.append(dep)
                    cycle.reverse()
                    cycles.append(cycle)
    return cycles


def critical_path(graph: DependencyGraph, cycles: Optional[List[List[str]]] = None) -> List[str]:
    """Longest dependency chain, root dependency first.

    Empty when the graph has a cycle. Distances count nodes, so an isolated
    intent forms a path of length one. On ties the earliest node in graph
    order wins.
    """
    if cycles is None:
        cycles = find_cycles(graph)
    if cycles:
        return []

    remaining = {node: len(graph.dependencies(node)) for node in graph.nodes}
    queue = deque(node for node in graph.nodes if remaining[node] == 0)
    dist = {node: 1 for node in graph.nodes}
    prev: Dict[str, Optional[str]] = {node: None for node in graph.nodes}

    while queue:
        node = queue.popleft()
        for dependent in graph.dependents(node):
            candidate = dist[node] + 1
            if candidate > dist[dependent]:
                dist[dependent] = candidate
                prev[dependent] = node
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                queue.append(dependent)

    end_node: Optional[str] = None
    max_dist = 0
    for node in graph.nodes:
        if dist[node] > max_dist:
            max_dist = dist[node]
            end_node = node

    path: List[str] = []
    current = end_node
    while current is not None:
        path.append(current)
        current = prev[current]
    path.reverse()
    return path


def find_bottlenecks(
    graph: DependencyGraph,
    intents_by_id: Dict[str, Intent],
    threshold: int = BOTTLENECK_THRESHOLD,
) -> List[Bottleneck]:
    """Intents with at least ``threshold`` direct dependents, in graph order."""
    bottlenecks = []
    for node in graph.nodes:
        dependent_count = len(graph.dependents(node))
        if dependent_count >= threshold:
            intent = intents_by_id[node]
            bottlenecks.append(
                Bottleneck(
                    id=node,
                    user_goal=intent.display_goal,
                    dependent_count=dependent_count,
                    status=intent.status,
                )
            )
    return bottlenecks


def find_orphans(intents: Sequence[Intent]) -> List[str]:
    """Intents with no relations at all, in or out, of any relation type."""
    targeted = {relation.target_id for intent in intents for relation in intent.relations}
    return [
        intent.id
        for intent in intents
        if not intent.relations and intent.id not in targeted
    ]


def status_distribution(intents: Sequence[Intent]) -> Dict[str, int]:
    """Count intents per status; every lifecycle status is present."""
    distribution = {status.value: 0 for status in IntentStatus}
    for intent in intents:
        distribution[intent.status.value] += 1
    return distribution


class IntentGraphAnalyzer:
    """Compute graph facts over one intent set.

    The analyzer is a pure function of the intents given to the constructor.
    Repeated ids raise :class:`DuplicateIntentError` immediately.
    """

    def __init__(self, intents: Sequence[Intent]):
        self.intents = list(intents)
        self.graph = DependencyGraph.from_intents(self.intents)
        self.intents_by_id = {intent.id: intent for intent in self.intents}

    @log_performance("analyze_intent_graph")
    def analyze(self, kind: Union[AnalysisKind, str] = AnalysisKind.FULL) -> Dict[str, Any]:
        """Return the result dictionary for ``kind``.

        Raises:
            ValueError: if ``kind`` is not a known analysis kind.
        """
        kind = AnalysisKind(kind)
        total = len(self.intents)

        if kind is AnalysisKind.STATUS:
            result: Dict[str, Any] = {
                "statusDistribution": status_distribution(self.intents),
                "total": total,
            }
            log_analysis_event(kind.value, total)
            return result

        graph = self.graph
        cycles = find_cycles(graph)
        path = critical_path(graph, cycles)
        bottlenecks = find_bottlenecks(graph, self.intents_by_id)
        logger.debug(
            f"Analyzed {total} intents / {graph.edge_count} dependencies: "
            f"{len(cycles)} cycles, {len(bottlenecks)} bottlenecks"
        )

        if kind is AnalysisKind.CRITICAL_PATH:
            result = {"criticalPath": self._path_details(path), "length": len(path)}
        elif kind is AnalysisKind.RISKS:
            result = {"risks": [risk.to_dict() for risk in self._risks(cycles, bottlenecks)]}
        else:
            result = {
                "summary": {
                    "total": total,
                    "statusDistribution": status_distribution(self.intents),
                },
                "criticalPath": self._path_details(path),
                "cycles": [
                    [{"id": node, "userGoal": self._goal(node)} for node in cycle[:-1]]
                    for cycle in cycles
                ],
                "bottlenecks": [bottleneck.to_dict() for bottleneck in bottlenecks],
                "orphanCount": len(find_orphans(self.intents)),
            }

        log_analysis_event(kind.value, total, cycles=len(cycles), bottlenecks=len(bottlenecks))
        return result

    def _goal(self, node: str) -> str:
        return self.intents_by_id[node].display_goal

    def _path_details(self, path: List[str]) -> List[Dict[str, str]]:
        return [
            {
                "id": node,
                "userGoal": self._goal(node),
                "status": self.intents_by_id[node].status.value,
            }
            for node in path
        ]

    def _risks(self, cycles: List[List[str]], bottlenecks: List[Bottleneck]) -> List[Risk]:
        risks = []
        for cycle in cycles:
            names = [self._goal(node) for node in cycle[:-1]]
            risks.append(
                Risk(
                    type="cycle",
                    severity="critical",
                    message=f"Circular dependency: {' → '.join(names)}",
                )
            )
        for bottleneck in bottlenecks:
            message = f'"{bottleneck.user_goal}" blocks {bottleneck.dependent_count} intents'
            if bottleneck.severity == "critical":
                message += f" and is still {bottleneck.status.value}"
            risks.append(Risk(type="bottleneck", severity=bottleneck.severity, message=message))
        return risks
