"""Python mirror of the runtime script embedded in exported HTML.

Exported stories navigate on their own, without the live engine: they
find the start node, group a node's successors, pick a continuation and
resolve where a choice leads with the same four-bucket precedence.

Their condition check is a stub that reports every condition group as
satisfied, so exported builds do not gate edges by condition. That is the
default here too. Pass ``condition_check`` (for example
:func:`live_condition_check`) to play an export with real gating.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from storyloom.engine.conditions import evaluate_groups
from storyloom.engine.resolver import (
    ConditionCheck,
    bucket_edges,
    find_start_node,
    pick_continuation,
    pick_from_buckets,
)
from storyloom.engine.rng import RandomSource
from storyloom.models import ConditionGroup, GameState, OutgoingNode, StoryGraph

logger = logging.getLogger(__name__)


def always_satisfied(groups: list[ConditionGroup]) -> bool:
    return True


def live_condition_check(state: GameState, *, rng: RandomSource | None = None) -> ConditionCheck:
    """Condition check backed by the real evaluator for ``state``."""

    def check(groups: list[ConditionGroup]) -> bool:
        return evaluate_groups(groups, state, rng=rng)

    return check


class ExportRuntime:
    def __init__(
        self,
        graph: StoryGraph | Mapping[str, Any],
        *,
        condition_check: ConditionCheck | None = None,
        rng: RandomSource | None = None,
    ):
        if not isinstance(graph, StoryGraph):
            graph = StoryGraph.model_validate(graph)
        self.graph = graph
        self.condition_check = condition_check or always_satisfied
        self.rng = rng

    def find_start_node(self) -> str | None:
        return find_start_node(self.graph)

    def group_outgoing_nodes_by_type(self, node_id: str) -> dict[str, list[OutgoingNode]]:
        """Narrative and choice successors only; other types are not shown."""
        grouped: dict[str, list[OutgoingNode]] = {"narrative": [], "choice": []}
        for edge in self.graph.outgoing_edges(node_id):
            target = self.graph.get_node(edge.target)
            if target is not None and target.type in grouped:
                grouped[target.type].append(OutgoingNode(node=target, edge=edge))
        return grouped

    def pick_continuation(self, candidates: list[OutgoingNode]) -> OutgoingNode | None:
        """The "Continue" button: precedence over the edges leading to each candidate."""
        return pick_continuation(candidates, self.condition_check, rng=self.rng)

    def resolve_choice(self, choice_id: str) -> str | None:
        buckets = bucket_edges(choice_id, self.graph, self.condition_check)
        edge = pick_from_buckets(buckets.ordered(), self.rng)
        if edge is None:
            logger.debug("Choice %s has no continuation", choice_id)
            return None
        return edge.target

    def has_continuation(self, choice_id: str) -> bool:
        """Whether a choice has any outgoing edge at all."""
        return bool(self.graph.outgoing_edges(choice_id))
