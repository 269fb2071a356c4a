"""Standalone HTML documents for playing a story outside the app.

The page embeds the flat graph as JSON together with a small runtime
script (see :mod:`storyloom.export.runtime` for its Python mirror). In
export mode the stylesheet is inlined so the file is fully self-contained;
in preview mode it is linked.
"""

import json
from collections.abc import Callable, Mapping
from typing import Any

import pybars

from storyloom.models import StoryGraph

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

DEFAULT_LANG = "en"
DEFAULT_STYLESHEET_HREF = "/styles/story.css"


class ExportError(Exception):
    """Raised when the story page template fails to compile or render."""


STORY_TEMPLATE = """\
<!DOCTYPE html>
<html lang="{{lang}}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{title}}</title>
    {{#if inline_styles}}<style>{{{styles}}}</style>{{else}}<link href="{{stylesheet_href}}" rel="stylesheet" />{{/if}}
</head>
<body>
    <div class="rt-Container">
        <h1 class="rt-Heading">{{title}}</h1>
        <div id="story-container"></div>

        <div class="rt-Flex rt-Flex--between" style="margin-top: 24px;">
            <button onclick="goBack()" id="back-btn" class="rt-Button rt-Button--soft" disabled>&larr; Back</button>
            <button onclick="restartStory()" id="restart-btn" class="rt-Button rt-Button--soft">&#8634; Restart</button>
        </div>
    </div>

    <script>
        const storyData = {{{story_json}}};
{{{runtime_script}}}
    </script>
</body>
</html>
"""

# Condition checks are a stub: every conditioned edge counts as satisfied.
RUNTIME_SCRIPT = """\
        let currentState = { currentNodeId: null, history: [] };

        function hasConditions(edge) {
            return !!(edge && edge.data && edge.data.conditions && edge.data.conditions.length > 0);
        }

        function evaluateConditions(conditions) {
            return true;
        }

        function findStartNode() {
            const targets = storyData.edges.map(e => e.target);
            const narrativeNodes = storyData.nodes.filter(n => n.type === 'narrative');
            const startNode = narrativeNodes.find(n => !targets.includes(n.id));
            if (startNode) return startNode.id;
            if (narrativeNodes.length > 0) return narrativeNodes[0].id;
            return storyData.nodes.length > 0 ? storyData.nodes[0].id : null;
        }

        function pickFromBuckets(buckets) {
            for (let i = 0; i < 3; i++) {
                if (buckets[i].length > 0) {
                    return buckets[i][Math.floor(Math.random() * buckets[i].length)];
                }
            }
            return buckets[3].length > 0 ? buckets[3][0] : null;
        }

        function groupOutgoingNodesByType(nodeId) {
            const grouped = { narrative: [], choice: [] };
            storyData.edges.filter(e => e.source === nodeId).forEach(edge => {
                const target = storyData.nodes.find(n => n.id === edge.target);
                if (target && grouped[target.type]) {
                    grouped[target.type].push(Object.assign({}, target, { edge: edge }));
                }
            });
            return grouped;
        }

        function pickContinuation(candidates) {
            if (!candidates || candidates.length === 0) return null;
            if (candidates.some(c => hasConditions(c.edge))) {
                const buckets = [[], [], [], []];
                candidates.forEach(c => {
                    if (!c.edge) {
                        buckets[3].push(c);
                    } else if (hasConditions(c.edge)) {
                        if (!evaluateConditions(c.edge.data.conditions)) return;
                        if (c.type === 'narrative') buckets[0].push(c);
                        else if (c.type === 'choice') buckets[2].push(c);
                    } else if (c.type === 'narrative') {
                        buckets[1].push(c);
                    } else {
                        buckets[3].push(c);
                    }
                });
                const chosen = pickFromBuckets(buckets);
                if (chosen) return chosen;
            }
            return candidates[Math.floor(Math.random() * candidates.length)];
        }

        function resolveChoice(choiceId) {
            const buckets = [[], [], [], []];
            storyData.edges.filter(e => e.source === choiceId).forEach(edge => {
                const target = storyData.nodes.find(n => n.id === edge.target);
                if (!target) return;
                if (hasConditions(edge)) {
                    if (!evaluateConditions(edge.data.conditions)) return;
                    if (target.type === 'narrative') buckets[0].push(edge);
                    else if (target.type === 'choice') buckets[2].push(edge);
                } else if (target.type === 'narrative') {
                    buckets[1].push(edge);
                } else {
                    buckets[3].push(edge);
                }
            });
            const edge = pickFromBuckets(buckets);
            return edge ? edge.target : null;
        }

        function card(html) {
            const el = document.createElement('div');
            el.className = 'fade-in rt-Card';
            el.style.padding = '16px';
            el.innerHTML = html;
            return el;
        }

        function showNoContinuation() {
            const container = document.getElementById('story-container');
            container.innerHTML = '';
            container.appendChild(card('<div class="rt-Text">No continuation</div>'));
            currentState.currentNodeId = 'no-continuation';
            document.getElementById('back-btn').disabled = currentState.history.length === 0;
        }

        function moveTo(nodeId) {
            currentState.history.push(currentState.currentNodeId);
            if (nodeId) {
                currentState.currentNodeId = nodeId;
                renderNode(nodeId);
            } else {
                showNoContinuation();
            }
        }

        function renderNode(nodeId) {
            const container = document.getElementById('story-container');
            container.innerHTML = '';
            const node = storyData.nodes.find(n => n.id === nodeId);
            if (!node) return;

            if (node.type === 'narrative') {
                const data = node.data || {};
                let content = '';
                if (data.title && data.title.trim() !== '') {
                    content += '<h2 class="rt-Text rt-Text--title">' + data.title + '</h2>';
                }
                content += '<div class="rt-Text">' + (data.text || '') + '</div>';
                container.appendChild(card(content));

                const options = document.createElement('div');
                options.className = 'rt-Flex rt-Flex--column';
                options.style.marginTop = '16px';

                const grouped = groupOutgoingNodesByType(nodeId);
                grouped.choice.forEach(choice => {
                    const button = document.createElement('button');
                    button.className = 'rt-Button rt-Button--soft';
                    button.innerHTML = (choice.data && choice.data.text) || 'Choice';
                    const leadsSomewhere = storyData.edges.some(e => e.source === choice.id);
                    button.onclick = () => moveTo(leadsSomewhere ? resolveChoice(choice.id) : null);
                    options.appendChild(button);
                });

                if (grouped.narrative.length > 0) {
                    const button = document.createElement('button');
                    button.className = 'rt-Button rt-Button--outline';
                    button.innerHTML = 'Continue';
                    button.onclick = () => {
                        const next = pickContinuation(grouped.narrative);
                        moveTo(next ? next.id : null);
                    };
                    options.appendChild(button);
                }
                container.appendChild(options);
            } else if (node.type === 'choice') {
                currentState.currentNodeId = resolveChoice(nodeId);
                if (currentState.currentNodeId) {
                    renderNode(currentState.currentNodeId);
                } else {
                    showNoContinuation();
                }
                return;
            }

            document.getElementById('back-btn').disabled = currentState.history.length === 0;
        }

        function goBack() {
            if (currentState.history.length > 0) {
                currentState.currentNodeId = currentState.history.pop();
                renderNode(currentState.currentNodeId);
            }
        }

        function restartStory() {
            currentState = { currentNodeId: findStartNode(), history: [] };
            renderNode(currentState.currentNodeId);
        }

        document.addEventListener('DOMContentLoaded', () => {
            currentState.currentNodeId = findStartNode();
            if (currentState.currentNodeId) {
                renderNode(currentState.currentNodeId);
            } else {
                document.getElementById('story-container').innerHTML =
                    '<div class="rt-Card" style="padding: 16px;">' +
                    '<p class="rt-Text">The story is empty or malformed.</p></div>';
            }
        });
"""

STORY_STYLES = """\
body { margin: 0; background: #f7f5f0; color: #1f1d1a; font-family: Georgia, 'Times New Roman', serif; }
.rt-Container { max-width: 720px; margin: 0 auto; padding: 32px 16px; }
.rt-Heading { font-size: 28px; margin: 0 0 24px; }
.rt-Card { background: #fff; border: 1px solid #e3dfd6; border-radius: 8px; box-shadow: 0 1px 2px rgba(0, 0, 0, 0.05); }
.rt-Text { font-size: 18px; line-height: 1.6; }
.rt-Text--title { font-size: 22px; font-weight: bold; margin: 0 0 12px; }
.rt-Flex { display: flex; gap: 8px; }
.rt-Flex--column { flex-direction: column; }
.rt-Flex--between { justify-content: space-between; }
.rt-Button { font: inherit; font-size: 16px; padding: 10px 16px; border-radius: 6px; cursor: pointer; text-align: left; }
.rt-Button:disabled { opacity: 0.4; cursor: default; }
.rt-Button--soft { background: #efe9dc; border: 1px solid transparent; }
.rt-Button--outline { background: transparent; border: 1px solid #b9ad94; }
.fade-in { animation: fade-in 0.3s ease-in; }
@keyframes fade-in { from { opacity: 0; } to { opacity: 1; } }
"""


def _render(template_str: str, context: dict[str, Any]) -> str:
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise ExportError(f"Template error: {e}") from e


def story_json(graph: StoryGraph | Mapping[str, Any]) -> str:
    """Graph JSON safe to embed in a <script> element."""
    if not isinstance(graph, StoryGraph):
        graph = StoryGraph.model_validate(graph)
    data = graph.model_dump(by_alias=True, exclude_none=True)
    # the output never contains a raw "<"
    return json.dumps(data, ensure_ascii=False).replace("<", "\\u003c")


def generate_story_html(
    title: str,
    graph: StoryGraph | Mapping[str, Any],
    is_export: bool = False,
    *,
    lang: str = DEFAULT_LANG,
    stylesheet_href: str = DEFAULT_STYLESHEET_HREF,
    inline_styles: bool | None = None,
) -> str:
    """Render the playable page for a flat story graph.

    Export mode inlines the bundled stylesheet unless ``inline_styles`` is
    False; preview mode links ``stylesheet_href``.
    """
    if inline_styles is None:
        inline_styles = is_export
    context = {
        "title": title,
        "lang": lang,
        "inline_styles": inline_styles,
        "styles": STORY_STYLES,
        "stylesheet_href": stylesheet_href,
        "story_json": story_json(graph),
        "runtime_script": RUNTIME_SCRIPT,
    }
    return _render(STORY_TEMPLATE, context)


def generate_html_template(title: str, graph: StoryGraph | Mapping[str, Any], **options: Any) -> str:
    """The self-contained export document."""
    return generate_story_html(title, graph, is_export=True, **options)
