"""In-memory play session for previewing a story graph.

StorySession threads one GameState through the engine: visiting a
narrative node applies its operations and records it in the visit history,
choosing a choice node resolves where it leads, and ``back`` rolls the
state back to the snapshot taken before the last visit. Nothing is
persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from storyloom.engine.bootstrap import state_from_variables
from storyloom.engine.operations import execute_node_operations
from storyloom.engine.resolver import (
    choose_continuation,
    find_start_node,
    get_choices,
    get_next_node_after_choice,
    group_outgoing_nodes_by_type,
)
from storyloom.engine.rng import RandomSource
from storyloom.models import GameState, StoryGraph, StoryNode

logger = logging.getLogger(__name__)


class StorySession:
    def __init__(self, graph: StoryGraph | Mapping[str, Any], *, rng: RandomSource | None = None):
        if not isinstance(graph, StoryGraph):
            graph = StoryGraph.model_validate(graph)
        self.graph = graph
        self.rng = rng
        self.state: GameState = state_from_variables(graph.variables)
        self.history: list[str] = []
        # state before each entry of history, same length as history
        self._snapshots: list[GameState] = []

    @property
    def current_node(self) -> StoryNode | None:
        if not self.history:
            return None
        return self.graph.get_node(self.history[-1])

    def start(self) -> StoryNode | None:
        """Reset to declared variable defaults and enter the start node."""
        self.state = state_from_variables(self.graph.variables)
        self.history = []
        self._snapshots = []
        start_id = find_start_node(self.graph)
        if start_id is None:
            logger.info("Story has no nodes to start from")
            return None
        return self.visit(start_id)

    restart = start

    def visit(self, node_id: str) -> StoryNode | None:
        """Enter a narrative node: apply its operations and record the visit.

        Non-narrative nodes are returned without touching the state.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        if node.type != "narrative":
            logger.warning("Attempt to visit non-narrative node %s", node_id)
            return node

        self._snapshots.append(self.state)
        state = execute_node_operations(node.id, self.graph.variables, self.state, self.graph)
        self.state = state.model_copy(update={"visited_nodes": state.visited_nodes | {node.id}})
        self.history.append(node.id)
        return node

    def available_choices(self) -> list[StoryNode]:
        current = self.current_node
        if current is None:
            return []
        return get_choices(current.id, self.graph)

    def has_continuation(self) -> bool:
        current = self.current_node
        if current is None:
            return False
        return bool(group_outgoing_nodes_by_type(current.id, self.graph)["narrative"])

    def continue_(self) -> StoryNode | None:
        current = self.current_node
        if current is None:
            return None
        candidates = group_outgoing_nodes_by_type(current.id, self.graph)["narrative"]
        chosen = choose_continuation(candidates, self.state, rng=self.rng)
        if chosen is None:
            return None
        return self.visit(chosen.id)

    def choose(self, choice_id: str) -> StoryNode | None:
        """Take a choice and enter wherever it leads.

        Returns the node the choice resolved to, or None when the choice is
        unknown or leads nowhere.
        """
        choice = self.graph.get_node(choice_id)
        if choice is None:
            return None
        if choice.type != "choice":
            logger.warning("Attempt to choose non-choice node %s", choice_id)
            return None

        before = self.state
        self.state = self.state.model_copy(
            update={"visited_nodes": self.state.visited_nodes | {choice_id}}
        )
        next_id = get_next_node_after_choice(choice_id, self.graph, self.state, rng=self.rng)
        target = self.graph.get_node(next_id)
        if target is None:
            logger.debug("Choice %s leads nowhere", choice_id)
            return None
        if target.type != "narrative":
            logger.warning("Choice %s leads to non-narrative node %s", choice_id, target.id)
            return target

        self.visit(target.id)
        # going back from here also forgets the choice
        self._snapshots[-1] = before
        return target

    def back(self) -> StoryNode | None:
        """Undo the last visit. The first node cannot be undone."""
        if len(self.history) <= 1:
            return None
        self.history.pop()
        self.state = self._snapshots.pop()
        return self.current_node
