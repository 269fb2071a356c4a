"""Next-node resolution over the four priority buckets.

Outgoing edges (or candidate nodes carrying their originating edge) are
split into, in order of precedence:

  1. conditioned edges into narrative nodes whose conditions hold
  2. unconditioned edges into narrative nodes
  3. conditioned edges into choice nodes whose conditions hold
  4. direct connections (unconditioned edges into anything else)

The first non-empty bucket wins. Buckets 1-3 pick uniformly at random,
bucket 4 always takes its first member in graph order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from pydantic import BaseModel, Field

from storyloom.engine.conditions import evaluate_groups, filter_nodes_by_conditions
from storyloom.engine.rng import RandomSource, pick_index
from storyloom.models import ConditionGroup, GameState, OutgoingNode, StoryEdge, StoryGraph, StoryNode

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Decides whether an edge's non-empty condition groups hold.
ConditionCheck = Callable[[list[ConditionGroup]], bool]


class ConnectionBuckets(BaseModel):
    narrative_with_conditions: list[StoryEdge] = Field(default_factory=list)
    unconditioned_narrative: list[StoryEdge] = Field(default_factory=list)
    choice_with_conditions: list[StoryEdge] = Field(default_factory=list)
    direct: list[StoryEdge] = Field(default_factory=list)

    def ordered(self) -> list[list[StoryEdge]]:
        return [
            self.narrative_with_conditions,
            self.unconditioned_narrative,
            self.choice_with_conditions,
            self.direct,
        ]


class CandidateBuckets(BaseModel):
    narrative_with_conditions: list[OutgoingNode] = Field(default_factory=list)
    unconditioned_narrative: list[OutgoingNode] = Field(default_factory=list)
    choice_with_conditions: list[OutgoingNode] = Field(default_factory=list)
    direct: list[OutgoingNode] = Field(default_factory=list)

    def ordered(self) -> list[list[OutgoingNode]]:
        return [
            self.narrative_with_conditions,
            self.unconditioned_narrative,
            self.choice_with_conditions,
            self.direct,
        ]


def pick_from_buckets(buckets: Sequence[Sequence[T]], rng: RandomSource | None) -> T | None:
    *random_buckets, direct = buckets
    for bucket in random_buckets:
        if bucket:
            return bucket[pick_index(rng, len(bucket))]
    if direct:
        return direct[0]
    return None


# ── Edge-based resolution ────────────────────────────────


def categorize_connections(
    node_id: str,
    graph: StoryGraph,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> ConnectionBuckets:
    """Split every outgoing edge of ``node_id`` into the four buckets.

    Edges with unresolvable targets are skipped. Conditioned edges whose
    conditions fail are dropped, as are satisfied conditioned edges into
    anything other than a narrative or choice node.
    """
    return bucket_edges(
        node_id,
        graph,
        lambda groups: evaluate_groups(groups, state, rng=rng),
    )


def bucket_edges(node_id: str, graph: StoryGraph, check: ConditionCheck) -> ConnectionBuckets:
    """Edge split of :func:`categorize_connections` with any condition check."""
    buckets = ConnectionBuckets()
    for edge in graph.outgoing_edges(node_id):
        target = graph.get_node(edge.target)
        if target is None:
            continue

        if edge.conditions:
            if not check(edge.conditions):
                continue
            if target.type == "narrative":
                buckets.narrative_with_conditions.append(edge)
            elif target.type == "choice":
                buckets.choice_with_conditions.append(edge)
        elif target.type == "narrative":
            buckets.unconditioned_narrative.append(edge)
        else:
            buckets.direct.append(edge)
    return buckets


def get_next_node(
    node_id: str,
    graph: StoryGraph,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> str | None:
    """Resolve where ``node_id`` leads for ``state``; ``None`` when nowhere."""
    buckets = categorize_connections(node_id, graph, state, rng=rng)
    edge = pick_from_buckets(buckets.ordered(), rng)
    if edge is None:
        logger.debug("No eligible transition from %s", node_id)
        return None
    logger.debug("Resolved %s -> %s", node_id, edge.target)
    return edge.target


# ── Candidate-based resolution ───────────────────────────


def categorize_candidates(
    candidates: Iterable[OutgoingNode],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> CandidateBuckets:
    """Bucket pre-extracted candidates after dropping unavailable ones.

    A satisfied conditioned candidate that is neither narrative nor choice
    lands in ``direct`` here, unlike the edge-based split which drops it.
    """
    buckets = CandidateBuckets()
    for candidate in filter_nodes_by_conditions(candidates, state, rng=rng):
        conditioned = candidate.has_conditions
        if candidate.type == "narrative" and conditioned:
            buckets.narrative_with_conditions.append(candidate)
        elif candidate.type == "narrative":
            buckets.unconditioned_narrative.append(candidate)
        elif candidate.type == "choice" and conditioned:
            buckets.choice_with_conditions.append(candidate)
        else:
            buckets.direct.append(candidate)
    return buckets


def pick_candidate(
    candidates: Sequence[OutgoingNode],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> OutgoingNode | None:
    if not candidates:
        return None
    return pick_from_buckets(categorize_candidates(candidates, state, rng=rng).ordered(), rng)


def choose_continuation(
    candidates: Sequence[OutgoingNode],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> OutgoingNode | None:
    """Pick the successor for a "Continue" action.

    When any candidate's edge is conditioned, candidates are bucketed with
    their conditions checked: edgeless candidates count as direct and
    satisfied conditioned candidates of another type are dropped. If that
    yields nothing, or nothing is conditioned, any candidate is picked
    uniformly at random.
    """
    return pick_continuation(
        candidates,
        lambda groups: evaluate_groups(groups, state, rng=rng),
        rng=rng,
    )


def bucket_continuations(candidates: Iterable[OutgoingNode], check: ConditionCheck) -> CandidateBuckets:
    buckets = CandidateBuckets()
    for candidate in candidates:
        if candidate.edge is None:
            buckets.direct.append(candidate)
        elif candidate.has_conditions:
            if not check(candidate.edge.conditions):
                continue
            if candidate.type == "narrative":
                buckets.narrative_with_conditions.append(candidate)
            elif candidate.type == "choice":
                buckets.choice_with_conditions.append(candidate)
        elif candidate.type == "narrative":
            buckets.unconditioned_narrative.append(candidate)
        else:
            buckets.direct.append(candidate)
    return buckets


def pick_continuation(
    candidates: Sequence[OutgoingNode],
    check: ConditionCheck,
    *,
    rng: RandomSource | None = None,
) -> OutgoingNode | None:
    """:func:`choose_continuation` with any condition check."""
    if not candidates:
        return None

    if any(c.has_conditions for c in candidates):
        chosen = pick_from_buckets(bucket_continuations(candidates, check).ordered(), rng)
        if chosen is not None:
            return chosen
        logger.debug("No conditioned continuation available, falling back to a random pick")

    return candidates[pick_index(rng, len(candidates))]


# ── Graph queries ────────────────────────────────────────


def get_choices(node_id: str, graph: StoryGraph) -> list[StoryNode]:
    """Choice nodes reachable over one outgoing edge, unfiltered by conditions.

    This decides what to display; conditions only gate where a choice leads.
    """
    choices = []
    for edge in graph.outgoing_edges(node_id):
        target = graph.get_node(edge.target)
        if target is not None and target.type == "choice":
            choices.append(target)
    return choices


def group_outgoing_nodes_by_type(node_id: str, graph: StoryGraph) -> dict[str, list[OutgoingNode]]:
    grouped: dict[str, list[OutgoingNode]] = {"narrative": [], "choice": [], "layer": []}
    for edge in graph.outgoing_edges(node_id):
        target = graph.get_node(edge.target)
        if target is None:
            continue
        grouped.setdefault(target.type, []).append(OutgoingNode(node=target, edge=edge))
    return grouped


def get_next_node_after_choice(
    choice_id: str,
    graph: StoryGraph,
    state: GameState | None = None,
    *,
    rng: RandomSource | None = None,
) -> str | None:
    """Where a choice leads. Without a state, the first outgoing edge wins."""
    if state is not None:
        return get_next_node(choice_id, graph, state, rng=rng)
    edges = graph.outgoing_edges(choice_id)
    if not edges:
        return None
    return edges[0].target


def find_start_node(graph: StoryGraph) -> str | None:
    """First narrative node without incoming edges.

    Falls back to the first narrative node, then to the first node of any
    type. An empty graph has no start.
    """
    narrative = [n for n in graph.nodes if n.type == "narrative"]
    targets = {e.target for e in graph.edges}
    for node in narrative:
        if node.id not in targets:
            return node.id
    if narrative:
        return narrative[0].id
    if graph.nodes:
        return graph.nodes[0].id
    return None
