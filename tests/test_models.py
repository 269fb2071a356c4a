"""Tests for storyloom.models."""

import pytest
from pydantic import ValidationError

from storyloom.models import (
    ConditionGroup,
    CustomTarget,
    GameState,
    NodeHappenedCondition,
    OutgoingNode,
    ProbabilityCondition,
    StoryEdge,
    StoryGraph,
    StoryNode,
    VariableComparisonCondition,
    VariableOperation,
    VariableTarget,
    condition_adapter,
)


class TestConditions:
    def test_discriminates_on_type(self) -> None:
        c = condition_adapter.validate_python({"type": "probability", "probability": 0.5})
        assert isinstance(c, ProbabilityCondition)
        assert c.probability == 0.5

    def test_camel_case_keys_accepted(self) -> None:
        c = condition_adapter.validate_python({
            "type": "variable_comparison",
            "varId": "gold",
            "valType": "variable",
            "comparisonVarId": "price",
            "operator": "gte",
        })
        assert isinstance(c, VariableComparisonCondition)
        assert c.var_id == "gold"
        assert c.comparison_var_id == "price"

    def test_node_happened_variants(self) -> None:
        for t in ("node_happened", "node_not_happened"):
            c = condition_adapter.validate_python({"type": t, "nodeId": "n1"})
            assert isinstance(c, NodeHappenedCondition)
            assert c.type == t

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            condition_adapter.validate_python({"type": "moon_phase"})

    def test_unknown_operator_still_parses(self) -> None:
        c = condition_adapter.validate_python(
            {"type": "variable_comparison", "varId": "x", "operator": "between"}
        )
        assert c.operator == "between"

    def test_group_defaults(self) -> None:
        g = ConditionGroup()
        assert g.operator == "AND"
        assert g.conditions == []

    def test_group_invalid_operator_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ConditionGroup(operator="XOR")


class TestOperations:
    def test_target_union(self) -> None:
        op = VariableOperation.model_validate({
            "variableId": "hp",
            "operationType": "addition",
            "target": {"type": "custom", "value": 5},
        })
        assert isinstance(op.target, CustomTarget)
        assert op.target.value == 5

        op = VariableOperation.model_validate({
            "variableId": "hp",
            "operationType": "override",
            "target": {"type": "variable", "variableId": "max_hp"},
        })
        assert isinstance(op.target, VariableTarget)
        assert op.target.variable_id == "max_hp"

    def test_dump_uses_camel_case(self) -> None:
        op = VariableOperation(variable_id="hp", operation_type="invert")
        dumped = op.model_dump(by_alias=True, exclude_none=True)
        assert dumped == {"variableId": "hp", "operationType": "invert"}


class TestGraph:
    def _graph(self) -> StoryGraph:
        return StoryGraph.model_validate({
            "nodes": [
                {"id": "a", "type": "narrative"},
                {"id": "b", "type": "choice"},
                {"id": "c", "type": "narrative"},
            ],
            "edges": [
                {"id": "e1", "source": "a", "target": "b"},
                {"id": "e2", "source": "a", "target": "c",
                 "data": {"conditions": [{"operator": "OR", "conditions": []}]}},
                {"id": "e3", "source": "b", "target": "c"},
            ],
        })

    def test_lookups(self) -> None:
        g = self._graph()
        assert g.get_node("b").type == "choice"
        assert g.get_node("missing") is None
        assert [e.id for e in g.outgoing_edges("a")] == ["e1", "e2"]
        assert [e.id for e in g.incoming_edges("c")] == ["e2", "e3"]
        assert g.find_edge("b", "c").id == "e3"
        assert g.find_edge("c", "a") is None

    def test_edge_conditions_property(self) -> None:
        g = self._graph()
        assert g.find_edge("a", "b").conditions == []
        assert len(g.find_edge("a", "c").conditions) == 1

    def test_invalid_node_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StoryNode(id="x", type="portal")

    def test_extra_editor_fields_kept(self) -> None:
        node = StoryNode.model_validate({"id": "x", "type": "note", "position": {"x": 1, "y": 2}})
        assert node.model_dump(by_alias=True)["position"] == {"x": 1, "y": 2}


class TestRuntimeTypes:
    def test_game_state_defaults(self) -> None:
        s = GameState()
        assert s.variables == {}
        assert s.visited_nodes == set()

    def test_game_state_from_camel_case(self) -> None:
        s = GameState.model_validate({"variables": {"x": 1}, "visitedNodes": ["a", "a", "b"]})
        assert s.visited_nodes == {"a", "b"}

    def test_outgoing_node(self) -> None:
        node = StoryNode(id="n", type="narrative")
        bare = OutgoingNode(node=node)
        assert bare.id == "n"
        assert bare.type == "narrative"
        assert not bare.has_conditions

        edge = StoryEdge(source="s", target="n", data={"conditions": [{"conditions": []}]})
        assert OutgoingNode(node=node, edge=edge).has_conditions
