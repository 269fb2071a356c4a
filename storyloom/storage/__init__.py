"""File-based JSON storage for story documents and settings.

Data layout:
  data/
    stories/
      <slug>.json        Stored story: {title, slug, data, metadata}
    preview.json         Latest preview document (same shape, no slug)
    config.json          Export and playback settings

A story document's ``data`` is the flat graph ({nodes, edges, variables})
with the editor's camelCase keys; ``metadata`` carries the save timestamp
and the document format version ("1.0").

Slug rules: title → Unicode normalize → strip non-ASCII → lowercase →
replace non-alnum runs with hyphen → strip leading/trailing hyphens.

Config: get_config() returns defaults merged with stored values.
update_config() merges each section (export, playback) key-by-key.
"""

# Re-export all public symbols so `from storyloom import storage` keeps working.

from .core import (  # noqa: F401
    data_dir,
    init_storage,
    preview_path,
    slugify,
    stories_dir,
)

from .stories import (  # noqa: F401
    delete_story,
    get_story,
    get_story_preview,
    list_stories,
    load_story_document,
    save_story,
    save_story_preview,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
