"""Graph validation and lint rules for story graphs.

The engine degrades silently on broken references (a missing node is "no
such edge", an undeclared variable is a no-op), so these checks are what
surfaces them to an author before playback.

Each rule produces Diagnostic objects with severity (ERROR, WARNING, INFO)
and a message naming the offending node or edge. Connectivity is checked
separately: a playable graph has exactly one start node from which every
narrative and choice node is reachable.

Usage::

    diagnostics = validate(graph)
    if not is_ready_for_playback(graph):
        print(check_connectivity(graph).message)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from storyloom.models import NodeHappenedCondition, StoryEdge, StoryGraph, VariableComparisonCondition

PLAYABLE_TYPES = frozenset({"narrative", "choice"})


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Diagnostic:
    """A single validation finding."""

    rule: str
    severity: Severity
    message: str
    node_id: str = ""
    edge_id: str = ""


def validate(graph: StoryGraph) -> list[Diagnostic]:
    """Run all validation rules against a graph.

    Returns a list of diagnostics. Empty list = graph is valid.
    """
    diagnostics: list[Diagnostic] = []
    for rule in ALL_RULES:
        diagnostics.extend(rule(graph))
    return diagnostics


def validate_or_raise(graph: StoryGraph) -> None:
    """Validate a graph and raise if any ERROR-level diagnostics found.

    Raises:
        ValueError: With all error messages concatenated.
    """
    diagnostics = validate(graph)
    errors = [d for d in diagnostics if d.severity == Severity.ERROR]
    if errors:
        messages = [f"  [{d.rule}] {d.message}" for d in errors]
        raise ValueError(
            f"Story graph validation failed with {len(errors)} error(s):\n" + "\n".join(messages)
        )


# ------------------------------------------------------------------ #
# Individual lint rules
# ------------------------------------------------------------------ #


def _rule_condition_node_references(graph: StoryGraph) -> list[Diagnostic]:
    """V01: node_happened conditions must reference existing nodes."""
    node_ids = {n.id for n in graph.nodes}
    results: list[Diagnostic] = []
    for edge in graph.edges:
        for group in edge.conditions:
            for condition in group.conditions:
                if not isinstance(condition, NodeHappenedCondition) or not condition.node_id:
                    continue
                if condition.node_id not in node_ids:
                    results.append(
                        Diagnostic(
                            rule="V01",
                            severity=Severity.ERROR,
                            message=(
                                "Condition references a node that no longer exists "
                                f"(nodeId: {condition.node_id})"
                            ),
                            edge_id=edge.id or "",
                        )
                    )
    return results


def _rule_variable_references(graph: StoryGraph) -> list[Diagnostic]:
    """V02: conditions and operations must reference declared variables."""
    declared = {v.id for v in graph.variables}
    results: list[Diagnostic] = []

    for edge in graph.edges:
        for group in edge.conditions:
            for condition in group.conditions:
                if not isinstance(condition, VariableComparisonCondition):
                    continue
                referenced = [condition.var_id]
                if condition.val_type == "variable":
                    referenced.append(condition.comparison_var_id)
                for var_id in referenced:
                    if var_id and var_id not in declared:
                        results.append(
                            Diagnostic(
                                rule="V02",
                                severity=Severity.ERROR,
                                message=f"Condition references an undeclared variable '{var_id}'",
                                edge_id=edge.id or "",
                            )
                        )

    for node in graph.nodes:
        for operation in node.operations:
            referenced = [operation.variable_id]
            target = operation.target
            if target is not None and target.type == "variable":
                referenced.append(target.variable_id)
            for var_id in referenced:
                if var_id and var_id not in declared:
                    results.append(
                        Diagnostic(
                            rule="V02",
                            severity=Severity.ERROR,
                            message=f"Operation on node '{node.id}' references an undeclared variable '{var_id}'",
                            node_id=node.id,
                        )
                    )
    return results


def _has_effective_conditions(edge: StoryEdge) -> bool:
    return any(group.conditions for group in edge.conditions)


def _rule_branching_without_conditions(graph: StoryGraph) -> list[Diagnostic]:
    """V03: when a node branches, at most one branch may be unconditioned.

    Branches into choice nodes are exempt: choices are what the player picks.
    """
    by_source: dict[str, list[StoryEdge]] = defaultdict(list)
    for edge in graph.edges:
        key = f"{edge.source}:{edge.source_handle}" if edge.source_handle else edge.source
        by_source[key].append(edge)

    results: list[Diagnostic] = []
    for source_key, edges in by_source.items():
        if len(edges) <= 1:
            continue

        target_types = [_target_type(graph, e) for e in edges]
        if all(t == "choice" for t in target_types):
            continue

        bare = [
            (edge, target_type)
            for edge, target_type in zip(edges, target_types)
            if not _has_effective_conditions(edge)
        ]
        if len(bare) <= 1:
            continue

        if any(t == "choice" for _, t in bare):
            flagged = [(e, t) for e, t in bare if t != "choice"]
        else:
            flagged = bare[1:]

        for edge, target_type in flagged:
            results.append(
                Diagnostic(
                    rule="V03",
                    severity=Severity.WARNING,
                    message=(
                        f"Multiple outgoing edges without conditions from node {source_key}. "
                        f"Target node type: {target_type}"
                    ),
                    node_id=edge.source,
                    edge_id=edge.id or "",
                )
            )
    return results


def _target_type(graph: StoryGraph, edge: StoryEdge) -> str:
    node = graph.get_node(edge.target)
    return node.type if node is not None else "unknown"


def _rule_edge_endpoints_exist(graph: StoryGraph) -> list[Diagnostic]:
    """V04: edge endpoints should reference existing nodes."""
    node_ids = {n.id for n in graph.nodes}
    results: list[Diagnostic] = []
    for edge in graph.edges:
        for end, node_id in (("source", edge.source), ("target", edge.target)):
            if node_id not in node_ids:
                results.append(
                    Diagnostic(
                        rule="V04",
                        severity=Severity.WARNING,
                        message=f"Edge references unknown {end} node: '{node_id}'",
                        edge_id=edge.id or "",
                    )
                )
    return results


ALL_RULES: list[Callable[[StoryGraph], list[Diagnostic]]] = [
    _rule_condition_node_references,
    _rule_variable_references,
    _rule_branching_without_conditions,
    _rule_edge_endpoints_exist,
]


# ------------------------------------------------------------------ #
# Connectivity
# ------------------------------------------------------------------ #


@dataclass
class ConnectivityResult:
    is_connected: bool
    start_nodes: list[str] = field(default_factory=list)
    unreachable_nodes: list[str] = field(default_factory=list)
    message: str = ""


def check_connectivity(graph: StoryGraph) -> ConnectivityResult:
    """Check that one start node reaches every narrative and choice node.

    Only narrative and choice nodes, and edges between them, take part.
    A start node is one without incoming edges.
    """
    nodes = [n for n in graph.nodes if n.type in PLAYABLE_TYPES]
    if not nodes:
        return ConnectivityResult(is_connected=True, message="Graph is empty")

    playable = {n.id for n in nodes}
    edges = [e for e in graph.edges if e.source in playable and e.target in playable]
    targets = {e.target for e in edges}
    starts = [n.id for n in nodes if n.id not in targets]

    if not starts:
        return ConnectivityResult(
            is_connected=False,
            unreachable_nodes=[n.id for n in nodes],
            message="No start node found. Every node has incoming edges (possible cycle)",
        )

    if len(starts) > 1:
        return ConnectivityResult(
            is_connected=False,
            start_nodes=starts,
            message=f"Found {len(starts)} start nodes. Playback needs exactly one start node",
        )

    successors: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        successors[edge.source].append(edge.target)

    reachable: set[str] = set()
    stack = [starts[0]]
    while stack:
        node_id = stack.pop()
        if node_id in reachable:
            continue
        reachable.add(node_id)
        stack.extend(t for t in successors[node_id] if t not in reachable)

    unreachable = [n.id for n in nodes if n.id not in reachable]
    if unreachable:
        message = f"Found {len(unreachable)} unreachable node(s). Every node must be connected to the main graph"
    else:
        message = "Graph is connected and ready for playback"
    return ConnectivityResult(
        is_connected=not unreachable,
        start_nodes=starts,
        unreachable_nodes=unreachable,
        message=message,
    )


def is_ready_for_playback(graph: StoryGraph) -> bool:
    result = check_connectivity(graph)
    return result.is_connected and len(result.start_nodes) == 1
