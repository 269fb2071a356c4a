"""Flatten a layered project into the flat graph the engine plays.

A project is a dict of layers keyed by id, with ``"root"`` at the top:

  {layerId: {name, nodeIds: [...], nodes: {id: node}, edges: {id: edge}}}

Layer nodes are not emitted. Their ``startingNodes`` and ``endingNodes``
become real nodes tagged with ``layerInfo`` and the nested layer is
flattened in place. Layer edges use ``startNodeId``/``endNodeId``; edges
through a layer's handles are rewired to the matching starting or ending
node, and plain edges into or out of a layer node are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from storyloom.models import StoryGraph, Variable

logger = logging.getLogger(__name__)

ROOT_LAYER = "root"


def prepare_story_data(
    layers: Mapping[str, Any] | None,
    variables: list[Variable | Mapping[str, Any]] | None = None,
) -> StoryGraph:
    """Flat graph for a layered project. A project without a root layer is empty."""
    if not layers or ROOT_LAYER not in layers:
        return StoryGraph(variables=variables or [])
    nodes: list[dict[str, Any]] = []
    edges: list[dict[str, Any]] = []
    _flatten_layer(ROOT_LAYER, layers, nodes, edges, set())
    logger.debug("Flattened %d layer(s) into %d nodes, %d edges", len(layers), len(nodes), len(edges))
    return StoryGraph.model_validate({"nodes": nodes, "edges": edges, "variables": variables or []})


def _position(node: Mapping[str, Any]) -> dict[str, float]:
    coords = node.get("coordinates") or {}
    return {"x": coords.get("x") or 0, "y": coords.get("y") or 0}


def _endpoint_node(endpoint: Mapping[str, Any], layer_id: str, layer_name: str, kind: str) -> dict[str, Any]:
    node: dict[str, Any] = {
        "id": endpoint["id"],
        "type": endpoint.get("type"),
        "position": _position(endpoint),
        "data": {
            **(endpoint.get("data") or {}),
            "layerInfo": {
                "layerId": layer_id,
                "layerName": layer_name,
                "isLayerEndpoint": True,
                "endpointType": kind,
            },
        },
    }
    if endpoint.get("type") == "narrative" and endpoint.get("operations"):
        node["operations"] = endpoint["operations"]
    return node


def _plain_node(node: Mapping[str, Any], layer_id: str, layer_name: str) -> dict[str, Any]:
    flat: dict[str, Any] = {
        "id": node["id"],
        "type": node.get("type"),
        "position": _position(node),
    }
    if node.get("type") in ("narrative", "choice"):
        flat["data"] = dict(node.get("data") or {})
    if node.get("type") == "narrative":
        if node.get("operations"):
            flat["operations"] = node["operations"]
        flat["data"]["layerInfo"] = {
            "layerId": layer_id,
            "layerName": layer_name if layer_name != ROOT_LAYER else "",
        }
    return flat


def _flatten_layer(
    layer_id: str,
    layers: Mapping[str, Any],
    nodes: list[dict[str, Any]],
    edges: list[dict[str, Any]],
    seen: set[str],
) -> None:
    if layer_id in seen:
        return
    seen.add(layer_id)
    layer = layers.get(layer_id)
    if not layer:
        return

    layer_name = layer.get("name") or layer_id
    layer_nodes: Mapping[str, Any] = layer.get("nodes") or {}

    for node_id in layer.get("nodeIds") or []:
        node = layer_nodes.get(node_id)
        if not node:
            continue
        if node.get("type") != "layer":
            nodes.append(_plain_node(node, layer_id, layer_name))
            continue

        nested_name = (layers.get(node["id"]) or {}).get("name") or node["id"]
        for endpoint in node.get("startingNodes") or []:
            nodes.append(_endpoint_node(endpoint, node["id"], nested_name, "starting"))
        for endpoint in node.get("endingNodes") or []:
            nodes.append(_endpoint_node(endpoint, node["id"], nested_name, "ending"))
        _flatten_layer(node["id"], layers, nodes, edges, seen)

    for edge in (layer.get("edges") or {}).values():
        if not edge:
            continue
        flat = _flatten_edge(edge, layer_nodes)
        if flat is not None:
            edges.append(flat)


def _find_endpoint(layer_node: Mapping[str, Any] | None, key: str, handle: str) -> Mapping[str, Any] | None:
    if not layer_node or layer_node.get("type") != "layer":
        return None
    for endpoint in layer_node.get(key) or []:
        if endpoint.get("id") == handle:
            return endpoint
    return None


def _flatten_edge(edge: Mapping[str, Any], layer_nodes: Mapping[str, Any]) -> dict[str, Any] | None:
    source_handle = edge.get("sourceHandle")
    target_handle = edge.get("targetHandle")
    source_node = layer_nodes.get(edge.get("startNodeId"))
    target_node = layer_nodes.get(edge.get("endNodeId"))

    if source_handle or target_handle:
        source = edge.get("startNodeId")
        target = edge.get("endNodeId")
        if source_handle:
            ending = _find_endpoint(source_node, "endingNodes", source_handle)
            if ending is None:
                return None
            source = ending["id"]
        if target_handle:
            starting = _find_endpoint(target_node, "startingNodes", target_handle)
            if starting is None:
                return None
            target = starting["id"]
    else:
        if (source_node or {}).get("type") == "layer" or (target_node or {}).get("type") == "layer":
            return None
        source = edge.get("startNodeId")
        target = edge.get("endNodeId")

    flat: dict[str, Any] = {"id": edge.get("id"), "source": source, "target": target}
    if edge.get("conditions"):
        flat["data"] = {"conditions": edge["conditions"]}
    return flat
