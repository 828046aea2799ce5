"""
`{{path}}` payload templates.

A template is plain text (normally JSON) with `{{a.b.c}}` placeholders.
Each placeholder is replaced by the value found by walking the payload
along `a`, `b`, `c`. Objects and non-string scalars are inserted as JSON,
strings as-is. The rendered text is parsed as JSON when possible.

Missing values render as `missing`: an empty string for live sends, and a
visible marker in the editor preview.
"""

import json
import logging
import re
from typing import Any, Dict, List

from rideway.services.errors import TemplateError
from rideway.services.event_schemas import generate_example_payload, unknown_template_paths

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
NOT_FOUND_MARKER = "[Not Found]"

_MISSING = object()


def extract_paths(template: str) -> List[str]:
    """Placeholder paths in order of appearance."""
    return [match.strip() for match in PLACEHOLDER_PATTERN.findall(template)]


def resolve_path(data: Any, path: str) -> Any:
    """Walk data along a dotted path; returns _MISSING if any step is absent."""
    value = data
    for part in path.split("."):
        if isinstance(value, dict):
            value = value.get(part, _MISSING)
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return _MISSING
        if value is _MISSING or value is None:
            return _MISSING
    return value


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def render_template(template: str, payload: Dict[str, Any], missing: str = "") -> str:
    """Substitute every placeholder; raises TemplateError on non-string input."""
    if not isinstance(template, str):
        raise TemplateError(f"Template must be a string, got {type(template).__name__}")

    def substitute(match: re.Match) -> str:
        value = resolve_path(payload, match.group(1).strip())
        if value is _MISSING:
            return missing
        return _to_text(value)

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def parse_rendered(rendered: str) -> Any:
    """JSON value of the rendered text, or the text itself if it is not JSON."""
    try:
        return json.loads(rendered)
    except ValueError:
        return rendered


def apply_template(template: str, payload: Dict[str, Any]) -> Any:
    """
    Render a template for a live send.

    Missing values become empty strings. If rendering fails the untouched
    payload is returned.
    """
    try:
        return parse_rendered(render_template(template, payload))
    except TemplateError as e:
        logger.error(f"Error processing template: {e}")
        return payload


def preview_template(template: str, event_type: str) -> Dict[str, Any]:
    """
    Render a template against an event type's example payload.

    Returns:
        {
            "rendered": str,          # text after substitution, marker for missing
            "payload": Any,           # parsed JSON, or the raw template on failure
            "validJson": bool,
            "unknownPaths": [str],    # placeholders the schema does not define
            "examplePayload": dict,
        }
    """
    example = generate_example_payload(event_type)
    paths = extract_paths(template) if isinstance(template, str) else []

    try:
        rendered = render_template(template, example, missing=NOT_FOUND_MARKER)
    except TemplateError as e:
        logger.warning(f"Template preview failed: {e}")
        return {
            "rendered": template,
            "payload": template,
            "validJson": False,
            "unknownPaths": [],
            "examplePayload": example,
        }

    try:
        parsed = json.loads(rendered)
        valid = True
    except ValueError:
        parsed = rendered
        valid = False

    return {
        "rendered": rendered,
        "payload": parsed,
        "validJson": valid,
        "unknownPaths": unknown_template_paths(event_type, paths),
        "examplePayload": example,
    }
