"""Variable operations applied when a narrative node is entered.

Every step produces a new :class:`GameState` with a copied variables map;
the input state is never mutated. Operations that do not apply to the
variable's declared type, or that reference an undeclared variable, leave
the state unchanged. Arithmetic results past the float range become
``inf``/``-inf``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from storyloom.engine.coercion import is_truthy, to_display_string, to_number
from storyloom.models import (
    NUMERIC_TYPES,
    GameState,
    StoryGraph,
    Variable,
    VariableOperation,
)

logger = logging.getLogger(__name__)

# Raw custom numbers on percent variables are typed as display percents.
# Only these operations convert them; multiply and divide use the raw number.
PERCENT_CONVERTED_OPERATIONS = frozenset({"addition", "subtract"})


def _as_operation(operation: Any) -> VariableOperation:
    if isinstance(operation, VariableOperation):
        return operation
    if isinstance(operation, Mapping):
        return VariableOperation.model_validate(operation)
    raise TypeError(f"Expected a variable operation, got {type(operation).__name__}")


def _as_variables(variables: Iterable[Variable | Mapping[str, Any]]) -> list[Variable]:
    return [v if isinstance(v, Variable) else Variable.model_validate(v) for v in variables]


def execute_node_operations(
    node_id: str,
    variables: Iterable[Variable | Mapping[str, Any]],
    state: GameState,
    graph: StoryGraph | None,
) -> GameState:
    """Apply the enabled operations of ``node_id`` in ``order`` and return the new state.

    A node without enabled operations (or an unknown node) returns ``state``
    itself. Operations sort stably by ``order``, missing order counting as 0.
    """
    node = graph.get_node(node_id) if graph is not None else None
    if node is None:
        return state

    operations = [op for op in node.operations if op.enabled is not False]
    if not operations:
        return state

    operations.sort(key=lambda op: op.order or 0)
    declared = _as_variables(variables)

    logger.debug("Applying %d operation(s) on node %s", len(operations), node_id)
    for operation in operations:
        state = execute_operation(operation, declared, state)
    return state


def execute_operation(
    operation: VariableOperation | Mapping[str, Any],
    variables: Iterable[Variable | Mapping[str, Any]],
    state: GameState,
) -> GameState:
    operation = _as_operation(operation)
    variable = next(
        (v for v in _as_variables(variables) if v.id == operation.variable_id),
        None,
    )
    if variable is None:
        logger.debug("Operation %s targets undeclared variable %r", operation.id, operation.variable_id)
        return state

    if variable.id in state.variables and state.variables[variable.id] is not None:
        current = state.variables[variable.id]
    else:
        current = variable.value

    kind = operation.operation_type
    numeric = variable.type in NUMERIC_TYPES

    if kind == "override":
        value = _get_target_value(operation, state)
    elif kind == "invert" and variable.type == "boolean":
        value = not is_truthy(current)
    elif kind == "join" and variable.type == "string":
        value = to_display_string(current) + to_display_string(_get_target_value(operation, state))
    elif kind == "addition" and numeric:
        value = to_number(to_number(current) + _get_converted_target_value(operation, variable, state))
    elif kind == "subtract" and numeric:
        value = to_number(to_number(current) - _get_converted_target_value(operation, variable, state))
    elif kind == "multiply" and numeric:
        value = to_number(to_number(current) * _get_converted_target_value(operation, variable, state))
    elif kind == "divide" and numeric:
        divisor = _get_converted_target_value(operation, variable, state)
        if divisor == 0:
            logger.debug("Skipping division of %s by zero", variable.id)
            return _copy(state)
        value = to_number(current) / divisor
    else:
        return _copy(state)

    updated = _copy(state)
    updated.variables[variable.id] = value
    return updated


def _copy(state: GameState) -> GameState:
    return state.model_copy(update={"variables": dict(state.variables)})


def _get_target_value(operation: VariableOperation, state: GameState) -> Any:
    target = operation.target
    if target is None:
        return ""
    if target.type == "variable":
        if not target.variable_id:
            return ""
        value = state.variables.get(target.variable_id)
        return "" if value is None else value
    return target.value


def _get_converted_target_value(
    operation: VariableOperation,
    variable: Variable,
    state: GameState,
) -> float:
    value = _get_target_value(operation, state)
    target = operation.target
    if (
        variable.type == "percent"
        and operation.operation_type in PERCENT_CONVERTED_OPERATIONS
        and target is not None
        and target.type == "custom"
        and isinstance(target.value, (int, float))
        and not isinstance(target.value, bool)
    ):
        value = to_number(value) * 0.01
    return to_number(value)
