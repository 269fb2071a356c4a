"""Tests for variable operations on node entry."""

import math

import pytest

from storyloom.engine.conditions import evaluate_condition
from storyloom.engine.operations import execute_node_operations, execute_operation
from storyloom.models import GameState, StoryGraph

VARIABLES = [
    {"id": "hp", "type": "integer", "value": 10},
    {"id": "speed", "type": "float", "value": 1.5},
    {"id": "luck", "type": "percent", "value": 0.5},
    {"id": "brave", "type": "boolean", "value": False},
    {"id": "name", "type": "string", "value": "Ada"},
    {"id": "max_hp", "type": "integer", "value": 20},
]


def op(variable_id, operation_type, value=None, *, target_var=None, **extra):
    if target_var is not None:
        target = {"type": "variable", "variableId": target_var}
    elif value is not None:
        target = {"type": "custom", "value": value}
    else:
        target = None
    return {"variableId": variable_id, "operationType": operation_type, "target": target, **extra}


def state(**variables):
    return GameState(variables=variables)


def apply(operation, s=None):
    return execute_operation(operation, VARIABLES, s or state())


# ── arithmetic ───────────────────────────────────────────


def test_addition_uses_declared_default():
    assert apply(op("hp", "addition", 5)).variables["hp"] == 15


def test_addition_uses_current_value():
    assert apply(op("hp", "addition", 5), state(hp=1)).variables["hp"] == 6


def test_subtract_multiply_divide():
    assert apply(op("hp", "subtract", 3)).variables["hp"] == 7
    assert apply(op("speed", "multiply", 2)).variables["speed"] == 3.0
    assert apply(op("hp", "divide", 4)).variables["hp"] == 2.5


def test_numeric_string_target_coerced():
    assert apply(op("hp", "addition", "5")).variables["hp"] == 15


def test_divide_by_zero_is_noop():
    result = apply(op("hp", "divide", 0), state(hp=9))
    assert result.variables["hp"] == 9


def test_divide_by_zero_variable_target_is_noop():
    result = apply(op("hp", "divide", target_var="zero"), state(hp=9, zero=0))
    assert result.variables["hp"] == 9


def test_arithmetic_ignored_for_non_numeric_types():
    s = state(name="Ada")
    assert apply(op("name", "addition", 1), s).variables == {"name": "Ada"}
    assert apply(op("brave", "multiply", 2), s).variables == {"name": "Ada"}


def test_unparsable_current_value_yields_nan():
    result = apply(op("hp", "addition", 1), state(hp="lots"))
    assert math.isnan(result.variables["hp"])


def test_huge_integers_overflow_to_infinity():
    huge = [{"id": "x", "type": "integer", "value": 10**400}]
    result = execute_operation(op("x", "multiply", 0.5), huge, state())
    assert result.variables["x"] == math.inf

    result = execute_operation(op("x", "addition", 1), huge, state())
    assert result.variables["x"] == math.inf


def test_integer_results_past_float_range_become_infinite():
    result = apply(op("hp", "multiply", 10**200), state(hp=10**200))
    assert result.variables["hp"] == math.inf


def test_huge_values_on_percent_variable():
    assert apply(op("luck", "addition", "9" * 400)).variables["luck"] == math.inf
    assert apply(op("luck", "addition", 10**400)).variables["luck"] == math.inf


def test_non_literal_string_target_yields_nan():
    assert math.isnan(apply(op("hp", "addition", "1_000")).variables["hp"])


# ── percent conversion ───────────────────────────────────


def test_percent_addition_and_subtract_convert_custom_numbers():
    assert apply(op("luck", "addition", 25)).variables["luck"] == pytest.approx(0.75)
    assert apply(op("luck", "subtract", 25)).variables["luck"] == pytest.approx(0.25)


def test_percent_multiply_and_divide_do_not_convert():
    assert apply(op("luck", "multiply", 2)).variables["luck"] == pytest.approx(1.0)
    assert apply(op("luck", "divide", 2)).variables["luck"] == pytest.approx(0.25)


def test_percent_override_does_not_convert():
    assert apply(op("luck", "override", 25)).variables["luck"] == 25


def test_percent_variable_target_not_converted():
    result = apply(op("luck", "addition", target_var="other"), state(other=0.1))
    assert result.variables["luck"] == pytest.approx(0.6)


def test_percent_string_custom_value_not_converted():
    assert apply(op("luck", "addition", "25")).variables["luck"] == pytest.approx(25.5)


# ── override / invert / join ─────────────────────────────


def test_override_sets_raw_target():
    assert apply(op("hp", "override", "full")).variables["hp"] == "full"


def test_override_from_variable_then_eq_holds():
    result = apply(op("hp", "override", target_var="max_hp"), state(hp=3, max_hp=20))
    cond = {"type": "variable_comparison", "varId": "hp", "operator": "eq",
            "valType": "variable", "comparisonVarId": "max_hp"}
    assert evaluate_condition(cond, result)


def test_override_missing_target_sets_empty_string():
    assert apply(op("hp", "override")).variables["hp"] == ""
    assert apply(op("hp", "override", target_var="nope")).variables["hp"] == ""


def test_invert_boolean_only():
    assert apply(op("brave", "invert")).variables["brave"] is True
    assert apply(op("brave", "invert"), state(brave=True)).variables["brave"] is False
    assert "hp" not in apply(op("hp", "invert")).variables


def test_join_strings():
    assert apply(op("name", "join", " Lovelace")).variables["name"] == "Ada Lovelace"
    assert apply(op("name", "join", 7)).variables["name"] == "Ada7"
    assert "hp" not in apply(op("hp", "join", "x")).variables


# ── fallbacks ────────────────────────────────────────────


def test_undeclared_variable_returns_same_state():
    s = state(hp=1)
    assert apply(op("ghost", "addition", 1), s) is s


def test_unknown_operation_type_is_noop():
    s = state(hp=1)
    result = apply(op("hp", "teleport", 1), s)
    assert result.variables == {"hp": 1}


def test_input_state_not_mutated():
    s = state(hp=1)
    apply(op("hp", "addition", 1), s)
    assert s.variables == {"hp": 1}


def test_non_object_operation_raises():
    with pytest.raises(TypeError):
        execute_operation("hp += 1", VARIABLES, state())


# ── execute_node_operations ──────────────────────────────


def _graph(operations):
    return StoryGraph.model_validate({
        "nodes": [{"id": "n", "type": "narrative", "operations": operations},
                  {"id": "bare", "type": "narrative"}],
        "edges": [],
        "variables": VARIABLES,
    })


def test_operations_sorted_by_order():
    graph = _graph([
        op("hp", "subtract", 3, order=2),
        op("hp", "override", 100, order=1),
    ])
    result = execute_node_operations("n", VARIABLES, state(hp=10), graph)
    assert result.variables["hp"] == 97


def test_missing_order_counts_as_zero_and_sort_is_stable():
    graph = _graph([
        op("name", "join", "b", order=1),
        op("name", "join", "a"),
        op("name", "join", "c"),
    ])
    result = execute_node_operations("n", VARIABLES, state(name=""), graph)
    assert result.variables["name"] == "acb"


def test_disabled_operations_skipped():
    graph = _graph([
        op("hp", "addition", 1, enabled=False),
        op("hp", "addition", 10, enabled=True),
        op("hp", "addition", 100),
    ])
    result = execute_node_operations("n", VARIABLES, state(hp=0), graph)
    assert result.variables["hp"] == 110


def test_no_operations_returns_same_state():
    s = state(hp=1)
    graph = _graph([op("hp", "addition", 1, enabled=False)])
    assert execute_node_operations("n", VARIABLES, s, graph) is s
    assert execute_node_operations("bare", VARIABLES, s, graph) is s
    assert execute_node_operations("missing", VARIABLES, s, graph) is s
    assert execute_node_operations("n", VARIABLES, s, None) is s


def test_steps_see_previous_results():
    graph = _graph([
        op("hp", "addition", 5, order=1),
        op("max_hp", "override", target_var="hp", order=2),
    ])
    result = execute_node_operations("n", VARIABLES, state(hp=1), graph)
    assert result.variables["max_hp"] == 6
