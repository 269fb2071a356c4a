"""Storyloom command line: validate, export, store and step through story graphs.

Story files are JSON in one of three shapes:
  {"title": ..., "data": {"nodes", "edges", "variables"}}    stored document
  {"nodes": ..., "edges": ..., "variables": ...}              flat graph
  {"title": ..., "layers": {...}, "variables": [...]}         layered project
"""

import argparse
import json
import logging
import os
import random
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

DEFAULT_DATA_DIR = ROOT / "data"
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")


def load_story_file(path: Path) -> tuple[str, Any]:
    """Read a story file and return its title and flat graph."""
    from storyloom.export import prepare_story_data
    from storyloom.models import StoryDocument, StoryGraph

    raw = json.loads(path.read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
    if "layers" in raw:
        return raw.get("title", ""), prepare_story_data(raw["layers"], raw.get("variables"))
    if "data" in raw:
        document = StoryDocument.model_validate(raw)
        return document.title, document.data
    return raw.get("title", ""), StoryGraph.model_validate(raw)


def cmd_validate(args: argparse.Namespace) -> int:
    from storyloom.validation import Severity, check_connectivity, validate

    _, graph = load_story_file(args.story)
    diagnostics = validate(graph)
    for d in diagnostics:
        where = d.node_id or d.edge_id
        print(f"{d.severity}: [{d.rule}] {d.message}" + (f" ({where})" if where else ""))

    connectivity = check_connectivity(graph)
    print(connectivity.message)
    if connectivity.unreachable_nodes:
        print("Unreachable: " + ", ".join(connectivity.unreachable_nodes))

    has_errors = any(d.severity == Severity.ERROR for d in diagnostics)
    return 1 if has_errors else 0


def cmd_export(args: argparse.Namespace) -> int:
    from storyloom import storage
    from storyloom.export import generate_html_template

    title, graph = load_story_file(args.story)
    settings = storage.get_config()["export"]
    html = generate_html_template(
        args.title or title or args.story.stem,
        graph,
        lang=settings["lang"],
        stylesheet_href=settings["stylesheet_href"],
        inline_styles=settings["inline_styles"],
    )
    output = args.output or args.story.with_suffix(".html")
    output.write_text(html)
    print(f"Wrote {output}")
    return 0


def cmd_store(args: argparse.Namespace) -> int:
    from storyloom import storage

    title, graph = load_story_file(args.story)
    title = args.title or title or args.story.stem
    document = storage.save_story(title, graph)
    storage.save_story_preview(title, graph)
    print(document["slug"])
    return 0


def cmd_next(args: argparse.Namespace) -> int:
    from storyloom import storage
    from storyloom.engine import get_next_node, state_from_variables

    _, graph = load_story_file(args.story)
    seed = args.seed if args.seed is not None else storage.get_config()["playback"]["seed"]
    rng = random.Random(seed) if seed is not None else None

    state = state_from_variables(graph.variables)
    print(get_next_node(args.node_id, graph, state, rng=rng) or "none")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storyloom", description="Interactive story graph tools")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: DATA_DIR or ./data)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine decisions")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Lint a story graph and check it is playable")
    p.add_argument("story", type=Path)
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("export", help="Write a standalone HTML player")
    p.add_argument("story", type=Path)
    p.add_argument("-o", "--output", type=Path, default=None)
    p.add_argument("--title", default=None)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("store", help="Save a story and make it the current preview")
    p.add_argument("story", type=Path)
    p.add_argument("--title", default=None)
    p.set_defaults(func=cmd_store)

    p = sub.add_parser("next", help="Resolve the next node from a freshly bootstrapped state")
    p.add_argument("story", type=Path)
    p.add_argument("node_id")
    p.add_argument("--seed", type=int, default=None)
    p.set_defaults(func=cmd_next)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from storyloom import storage
    data_dir = args.data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    storage.init_storage(data_dir)

    try:
        return args.func(args)
    except (OSError, ValueError) as e:
        # JSONDecodeError and pydantic ValidationError are ValueErrors
        print(f"storyloom: {args.story}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
