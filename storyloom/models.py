"""Core domain models for the narrative graph.

The engine, storage and export layers all operate on these types. The
graph document keeps the editor's camelCase keys on the wire (``varId``,
``operationType``, ``visitedNodes``); models accept either spelling and
dump camelCase with ``by_alias=True``.

Conditions and operation targets are closed tagged unions keyed on
``type``: an unknown ``type`` string is rejected at the parsing boundary.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

VariableType = Literal["integer", "float", "percent", "boolean", "string"]

NodeType = Literal["narrative", "choice", "layer", "note"]

NUMERIC_TYPES: frozenset[str] = frozenset({"integer", "float", "percent"})


class _GraphModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# ── Variables ────────────────────────────────────────────


class Variable(_GraphModel):
    """A declared story variable. ``value`` is the default for a new session.

    Percent variables store the fraction (0.25 means "25%").
    """

    id: str
    type: VariableType
    value: Any = None
    name: str | None = None


# ── Conditions ───────────────────────────────────────────


class ProbabilityCondition(_GraphModel):
    type: Literal["probability"]
    id: str | None = None
    probability: float | None = None


class VariableComparisonCondition(_GraphModel):
    type: Literal["variable_comparison"]
    id: str | None = None
    var_id: str | None = None
    operator: str = "eq"  # eq | neq | gt | gte | lt | lte
    val_type: Literal["variable", "custom"] = "custom"
    comparison_var_id: str | None = None
    value: Any = None
    percent_type: bool | None = None


class NodeHappenedCondition(_GraphModel):
    type: Literal["node_happened", "node_not_happened"]
    id: str | None = None
    node_id: str | None = None


Condition = Annotated[
    Union[ProbabilityCondition, VariableComparisonCondition, NodeHappenedCondition],
    Field(discriminator="type"),
]

CONDITION_TYPES = (ProbabilityCondition, VariableComparisonCondition, NodeHappenedCondition)

condition_adapter: TypeAdapter[Condition] = TypeAdapter(Condition)


class ConditionGroup(_GraphModel):
    """An AND/OR aggregation of conditions. An empty group is satisfied."""

    id: str | None = None
    operator: Literal["AND", "OR"] = "AND"
    conditions: list[Condition] = Field(default_factory=list)


# ── Operations ───────────────────────────────────────────


class VariableTarget(_GraphModel):
    type: Literal["variable"]
    variable_id: str | None = None


class CustomTarget(_GraphModel):
    type: Literal["custom"]
    value: Any = None


OperationTarget = Annotated[
    Union[VariableTarget, CustomTarget],
    Field(discriminator="type"),
]


class VariableOperation(_GraphModel):
    """A mutation applied to one variable when its narrative node is entered."""

    id: str | None = None
    variable_id: str | None = None
    operation_type: str  # override | invert | join | addition | subtract | multiply | divide
    target: OperationTarget | None = None
    order: float | None = None
    enabled: bool | None = None


# ── Graph document ───────────────────────────────────────


class StoryNode(_GraphModel):
    id: str
    type: NodeType
    data: dict[str, Any] = Field(default_factory=dict)
    operations: list[VariableOperation] = Field(default_factory=list)


class EdgeData(_GraphModel):
    conditions: list[ConditionGroup] = Field(default_factory=list)


class StoryEdge(_GraphModel):
    id: str | None = None
    source: str
    target: str
    data: EdgeData | None = None
    source_handle: str | None = None
    target_handle: str | None = None

    @property
    def conditions(self) -> list[ConditionGroup]:
        """Condition groups on this edge; empty when the edge is unconditioned."""
        if self.data is None:
            return []
        return self.data.conditions


class StoryGraph(_GraphModel):
    """The flat graph document handed to the engine, read-only per call."""

    nodes: list[StoryNode] = Field(default_factory=list)
    edges: list[StoryEdge] = Field(default_factory=list)
    variables: list[Variable] = Field(default_factory=list)

    def get_node(self, node_id: str | None) -> StoryNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> list[StoryEdge]:
        """Edges leaving a node, in graph order."""
        return [e for e in self.edges if e.source == node_id]

    def incoming_edges(self, node_id: str) -> list[StoryEdge]:
        return [e for e in self.edges if e.target == node_id]

    def find_edge(self, source: str, target: str) -> StoryEdge | None:
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None


class StoryDocument(_GraphModel):
    """A stored story: title, flat graph data and save metadata."""

    title: str = ""
    slug: str | None = None
    data: StoryGraph = Field(default_factory=StoryGraph)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ── Runtime state ────────────────────────────────────────


class GameState(_GraphModel):
    """Variable values and visited-node history for one play session."""

    variables: dict[str, Any] = Field(default_factory=dict)
    visited_nodes: set[str] = Field(default_factory=set)


class OutgoingNode(_GraphModel):
    """A successor node together with the edge that leads to it."""

    node: StoryNode
    edge: StoryEdge | None = None

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def type(self) -> str:
        return self.node.type

    @property
    def has_conditions(self) -> bool:
        return self.edge is not None and len(self.edge.conditions) > 0
