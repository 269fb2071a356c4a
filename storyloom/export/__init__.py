"""Static export: layered projects to a flat graph, and the flat graph to HTML.

  layers     prepare_story_data() flattens {layerId: layer} into a StoryGraph
  template   generate_story_html() / generate_html_template() render the page
  runtime    ExportRuntime mirrors the page's navigation script in Python
"""

from .layers import prepare_story_data  # noqa: F401

from .runtime import (  # noqa: F401
    ExportRuntime,
    always_satisfied,
    live_condition_check,
)

from .template import (  # noqa: F401
    ExportError,
    generate_html_template,
    generate_story_html,
    story_json,
)
