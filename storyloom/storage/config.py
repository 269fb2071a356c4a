"""Export and playback settings."""

import json
from pathlib import Path
from typing import Any

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "export": {
        "lang": "en",
        "inline_styles": True,
        "stylesheet_href": "/styles/story.css",
    },
    "playback": {
        "seed": None,
    },
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = {
        "export": dict(_CONFIG_DEFAULTS["export"]),
        "playback": dict(_CONFIG_DEFAULTS["playback"]),
    }
    path = _config_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for section in config:
            vals = stored.get(section)
            if isinstance(vals, dict):
                config[section].update(vals)
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    Sections are merged key-by-key; unknown sections are ignored.
    """
    config = get_config()
    for section, vals in fields.items():
        if section in config and isinstance(vals, dict):
            config[section].update(vals)
    _config_path().write_text(json.dumps(config, indent=2))
    return config
