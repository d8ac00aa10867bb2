from __future__ import annotations

from typing import Any, Dict, List

import jsonschema

# Runtime structural check for model output. Looser than the response_format
# schema: a missing theme is filled in later, extra keys are ignored.
_LAYOUT_SHAPE: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "layout": {"enum": ["single-column", "two-column", "hero-focused"]},
        "theme": {
            "type": "object",
            "properties": {"accent": {"type": "string"}},
        },
        "sections": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"type": {"type": "string"}, "props": {"type": "object"}},
                "required": ["type"],
            },
        },
    },
    "required": ["layout", "sections"],
}

_validator = jsonschema.Draft202012Validator(_LAYOUT_SHAPE)


def collect_layout_errors(doc: Any) -> List[Dict[str, str]]:
    """
    Return a list of {"path": "...", "message": "..."} error dicts.
    An empty list means the document can be turned into a GeneratedLayout.
    """
    errors: List[Dict[str, str]] = []
    for err in _validator.iter_errors(doc):
        loc = ".".join(str(p) for p in err.path) or "(root)"
        errors.append({"path": loc, "message": str(err.message)})
    return errors
