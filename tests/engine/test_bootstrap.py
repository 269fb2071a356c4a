"""Tests for bootstrapping player state from variables and stored documents."""

import logging

import pytest

from storyloom import storage
from storyloom.engine.bootstrap import (
    create_game_state_for_template,
    state_from_document,
    state_from_variables,
)
from storyloom.engine.conditions import evaluate_condition
from storyloom.models import StoryDocument, StoryGraph

VARIABLES = [
    {"id": "gold", "type": "integer", "value": 5},
    {"id": "name", "type": "string", "value": "Ada"},
]

GRAPH = {
    "nodes": [{"id": "X", "type": "narrative"}],
    "edges": [],
    "variables": VARIABLES,
}


def test_state_from_variables():
    s = state_from_variables(VARIABLES)
    assert s.variables == {"gold": 5, "name": "Ada"}
    assert s.visited_nodes == set()


def test_state_from_document_shapes():
    expected = {"gold": 5, "name": "Ada"}
    assert state_from_document({"title": "T", "data": GRAPH}).variables == expected
    assert state_from_document(GRAPH).variables == expected
    assert state_from_document(StoryGraph.model_validate(GRAPH)).variables == expected
    assert state_from_document(StoryDocument.model_validate({"data": GRAPH})).variables == expected


def test_state_from_document_rejects_non_objects():
    with pytest.raises(TypeError):
        state_from_document(["not", "a", "document"])


def test_bootstrap_never_seeds_history():
    s = state_from_document(GRAPH)
    assert not evaluate_condition({"type": "node_happened", "nodeId": "X"}, s)
    assert evaluate_condition({"type": "node_not_happened", "nodeId": "X"}, s)


# ── create_game_state_for_template ───────────────────────


def test_template_state_from_preview():
    storage.save_story_preview("Preview", GRAPH)
    s = create_game_state_for_template()
    assert s.variables == {"gold": 5, "name": "Ada"}
    assert s.visited_nodes == set()


def test_template_state_from_story_slug():
    storage.save_story("The Vault", GRAPH)
    s = create_game_state_for_template("the-vault")
    assert s.variables["gold"] == 5


def test_template_state_without_stored_data():
    assert create_game_state_for_template().variables == {}
    assert create_game_state_for_template("missing").variables == {}


def test_template_state_unreadable_data_logged(caplog):
    storage.preview_path().write_text("{not json")
    with caplog.at_level(logging.ERROR):
        s = create_game_state_for_template()
    assert s.variables == {}
    assert "Error reading stored variables" in caplog.text


def test_template_state_malformed_document_logged(caplog):
    storage.preview_path().write_text('{"data": {"variables": [{"id": "x", "type": "colour"}]}}')
    with caplog.at_level(logging.ERROR):
        s = create_game_state_for_template()
    assert s.variables == {}
    assert "preview" in caplog.text
