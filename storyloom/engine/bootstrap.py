"""Build a player state from declared variables or a stored document.

The bootstrapped state never has visit history, so ``node_happened``
conditions evaluate to False here (and ``node_not_happened`` to True).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from storyloom.models import GameState, StoryDocument, StoryGraph, Variable

logger = logging.getLogger(__name__)


def state_from_variables(variables: Iterable[Variable | Mapping[str, Any]]) -> GameState:
    values: dict[str, Any] = {}
    for variable in variables:
        if not isinstance(variable, Variable):
            variable = Variable.model_validate(variable)
        values[variable.id] = variable.value
    return GameState(variables=values, visited_nodes=set())


def state_from_document(document: StoryDocument | StoryGraph | Mapping[str, Any]) -> GameState:
    """Accepts a stored document or just its ``data`` part."""
    if isinstance(document, StoryDocument):
        graph = document.data
    elif isinstance(document, StoryGraph):
        graph = document
    elif isinstance(document, Mapping):
        if isinstance(document.get("data"), Mapping):
            graph = StoryDocument.model_validate(document).data
        else:
            graph = StoryGraph.model_validate(document)
    else:
        raise TypeError(f"Expected a story document, got {type(document).__name__}")
    return state_from_variables(graph.variables)


def create_game_state_for_template(slug: str | None = None) -> GameState:
    """State for one-off condition checks, read from durable storage.

    Reads the stored story ``slug``, or the current preview when no slug is
    given. Missing or unreadable data yields an empty state.
    """
    from storyloom import storage

    try:
        raw = storage.get_story(slug) if slug else storage.get_story_preview()
        if raw is None:
            logger.debug("No stored document for %s", slug or "preview")
            return GameState()
        return state_from_document(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Error reading stored variables for %s: %s", slug or "preview", e)
        return GameState()
