"""Stored story documents and the current preview document."""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from storyloom.models import StoryDocument, StoryGraph

from .core import preview_path, slugify, stories_dir

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = "1.0"


def _document(title: str, graph: StoryGraph | dict[str, Any]) -> dict[str, Any]:
    if not isinstance(graph, StoryGraph):
        graph = StoryGraph.model_validate(graph)
    return {
        "title": title,
        "data": graph.model_dump(by_alias=True, exclude_none=True),
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": DOCUMENT_VERSION,
        },
    }


# ── Stories ──────────────────────────────────────────────


def list_stories() -> list[dict[str, Any]]:
    results = []
    for path in sorted(stories_dir().glob("*.json")):
        results.append(json.loads(path.read_text()))
    return results


def get_story(slug: str) -> dict[str, Any] | None:
    path = stories_dir() / f"{slug}.json"
    if not path.is_file():
        return None
    return json.loads(path.read_text())


def save_story(title: str, graph: StoryGraph | dict[str, Any], slug: str | None = None) -> dict[str, Any]:
    """Write a story document. Without a slug, one is derived from the title.

    Saving under an existing slug replaces that story.
    """
    document = _document(title, graph)
    document["slug"] = slug or slugify(title)
    path = stories_dir() / f"{document['slug']}.json"
    path.write_text(json.dumps(document, indent=2))
    logger.info("Saved story %s", document["slug"])
    return document


def delete_story(slug: str) -> bool:
    path = stories_dir() / f"{slug}.json"
    if not path.is_file():
        return False
    path.unlink()
    return True


def load_story_document(slug: str) -> StoryDocument | None:
    """Stored story parsed into a model. Raises ValidationError on malformed data."""
    raw = get_story(slug)
    if raw is None:
        return None
    return StoryDocument.model_validate(raw)


# ── Preview ──────────────────────────────────────────────


def save_story_preview(title: str, graph: StoryGraph | dict[str, Any]) -> dict[str, Any]:
    """Replace the current preview document."""
    document = _document(title, graph)
    preview_path().write_text(json.dumps(document, indent=2))
    return document


def get_story_preview() -> dict[str, Any] | None:
    path = preview_path()
    if not path.is_file():
        return None
    return json.loads(path.read_text())
