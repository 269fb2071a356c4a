"""Condition evaluation against a player state.

A list of condition groups is satisfied when at least one OR group is
fully satisfied, or when at least one AND group exists and every AND group
is satisfied. OR groups are checked first and short-circuit; an empty or
absent list is always satisfied. This precedence is the historical
contract of authored stories and is kept as is.

Probability conditions draw from the injected random source, so the
number of draws depends on short-circuiting exactly as written here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from storyloom.engine.coercion import loose_compare, loose_equals, to_number
from storyloom.engine.rng import RandomSource, resolve
from storyloom.models import (
    CONDITION_TYPES,
    Condition,
    ConditionGroup,
    GameState,
    NodeHappenedCondition,
    OutgoingNode,
    ProbabilityCondition,
    StoryEdge,
    StoryGraph,
    VariableComparisonCondition,
    condition_adapter,
)

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte"})

PERCENT_FACTOR = 0.01


def _as_condition(condition: Any) -> Condition:
    if isinstance(condition, CONDITION_TYPES):
        return condition
    if isinstance(condition, Mapping):
        return condition_adapter.validate_python(condition)
    raise TypeError(f"Expected a condition, got {type(condition).__name__}")


def _as_group(group: Any) -> ConditionGroup:
    if isinstance(group, ConditionGroup):
        return group
    if isinstance(group, Mapping):
        return ConditionGroup.model_validate(group)
    raise TypeError(f"Expected a condition group, got {type(group).__name__}")


# ── Single conditions ────────────────────────────────────


def evaluate_condition(
    condition: Condition | Mapping[str, Any],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> bool:
    """Decide whether one condition holds for ``state``."""
    condition = _as_condition(condition)

    if isinstance(condition, ProbabilityCondition):
        return resolve(rng).random() < (condition.probability or 0)

    if isinstance(condition, VariableComparisonCondition):
        return _compare_variable(condition, state)

    if isinstance(condition, NodeHappenedCondition):
        happened = condition.node_id in state.visited_nodes
        if condition.type == "node_happened":
            return happened
        return not happened

    raise TypeError(f"Unsupported condition {type(condition).__name__}")


def _compare_variable(condition: VariableComparisonCondition, state: GameState) -> bool:
    left = state.variables.get(condition.var_id) if condition.var_id else None

    if condition.val_type == "variable":
        if not condition.comparison_var_id:
            return False
        right = state.variables.get(condition.comparison_var_id)
    else:
        right = condition.value
        is_number = isinstance(right, (int, float)) and not isinstance(right, bool)
        if is_number and condition.percent_type is True:
            # 25 typed into a percent comparison means the stored fraction 0.25
            right = to_number(right) * PERCENT_FACTOR

    op = condition.operator
    if op == "eq":
        return loose_equals(left, right)
    if op == "neq":
        return not loose_equals(left, right)
    if op not in COMPARISON_OPERATORS:
        logger.warning("Unknown comparison operator %r on variable %r", op, condition.var_id)
        return False
    return loose_compare(op, left, right)


# ── Groups ───────────────────────────────────────────────


def evaluate_group(
    group: ConditionGroup | Mapping[str, Any],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> bool:
    group = _as_group(group)
    if not group.conditions:
        return True
    if group.operator == "AND":
        return all(evaluate_condition(c, state, rng=rng) for c in group.conditions)
    return any(evaluate_condition(c, state, rng=rng) for c in group.conditions)


def evaluate_groups(
    groups: Iterable[ConditionGroup | Mapping[str, Any]] | None,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> bool:
    """Decide whether a list of condition groups is satisfied."""
    if not groups:
        return True
    parsed = [_as_group(g) for g in groups]
    if not parsed:
        return True

    for group in parsed:
        if group.operator == "OR" and evaluate_group(group, state, rng=rng):
            logger.debug("Condition groups satisfied by OR group %s", group.id)
            return True

    and_groups = [g for g in parsed if g.operator == "AND"]
    if not and_groups:
        logger.debug("No OR group satisfied and no AND groups present")
        return False
    passed = all(evaluate_group(g, state, rng=rng) for g in and_groups)
    logger.debug("AND groups %s", "satisfied" if passed else "not satisfied")
    return passed


# ── Evaluation trace ─────────────────────────────────────


class ConditionResult(BaseModel):
    condition: Condition
    result: bool


class GroupResult(BaseModel):
    group_id: str | None = None
    operator: str
    passed: bool
    conditions: list[ConditionResult] = Field(default_factory=list)


class GroupsEvaluation(BaseModel):
    """Verdict of :func:`evaluate_groups` plus the groups and conditions it checked."""

    passed: bool
    groups: list[GroupResult] = Field(default_factory=list)


def _trace_group(group: ConditionGroup, state: GameState, rng: RandomSource | None) -> GroupResult:
    results: list[ConditionResult] = []
    if group.operator == "AND":
        passed = True
        for condition in group.conditions:
            ok = evaluate_condition(condition, state, rng=rng)
            results.append(ConditionResult(condition=condition, result=ok))
            if not ok:
                passed = False
                break
    else:
        passed = not group.conditions
        for condition in group.conditions:
            ok = evaluate_condition(condition, state, rng=rng)
            results.append(ConditionResult(condition=condition, result=ok))
            if ok:
                passed = True
                break
    return GroupResult(group_id=group.id, operator=group.operator, passed=passed, conditions=results)


def explain_groups(
    groups: Iterable[ConditionGroup | Mapping[str, Any]] | None,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> GroupsEvaluation:
    """Same verdict as :func:`evaluate_groups`, with a per-group trace.

    Groups and conditions are visited in the same order and with the same
    short-circuiting, so random draws line up with a plain evaluation.
    """
    parsed = [_as_group(g) for g in groups or []]
    if not parsed:
        return GroupsEvaluation(passed=True)

    trace: list[GroupResult] = []
    for group in parsed:
        if group.operator != "OR":
            continue
        result = _trace_group(group, state, rng)
        trace.append(result)
        if result.passed:
            return GroupsEvaluation(passed=True, groups=trace)

    and_groups = [g for g in parsed if g.operator == "AND"]
    if not and_groups:
        return GroupsEvaluation(passed=False, groups=trace)

    for group in and_groups:
        result = _trace_group(group, state, rng)
        trace.append(result)
        if not result.passed:
            return GroupsEvaluation(passed=False, groups=trace)
    return GroupsEvaluation(passed=True, groups=trace)


# ── Edges and candidates ─────────────────────────────────


def evaluate_transition_conditions(
    source_id: str,
    target_id: str,
    graph: StoryGraph,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> bool:
    """Whether the edge ``source → target`` may be taken. No such edge → False."""
    edge = graph.find_edge(source_id, target_id)
    if edge is None:
        return False
    return evaluate_groups(edge.conditions, state, rng=rng)


def get_valid_edges(
    node_id: str,
    graph: StoryGraph,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> list[StoryEdge]:
    """Outgoing edges whose conditions hold. Unconditioned edges always do."""
    return [
        edge
        for edge in graph.outgoing_edges(node_id)
        if evaluate_groups(edge.conditions, state, rng=rng)
    ]


def is_node_available(
    candidate: OutgoingNode,
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> bool:
    if candidate.edge is None:
        return True
    return evaluate_groups(candidate.edge.conditions, state, rng=rng)


def filter_nodes_by_conditions(
    candidates: Iterable[OutgoingNode],
    state: GameState,
    *,
    rng: RandomSource | None = None,
) -> list[OutgoingNode]:
    return [c for c in candidates if is_node_available(c, state, rng=rng)]
