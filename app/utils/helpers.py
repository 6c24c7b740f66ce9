"""
Shared Utility Functions

Common helper functions used across multiple modules.
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def normalize_name(name: Optional[str]) -> str:
    """
    Build the case-insensitive lookup key for a competency name.

    Leading/trailing whitespace is dropped, inner runs of whitespace are
    collapsed and the result is case-folded:
    - "  Python " → "python"
    - "Statistical   Analysis" → "statistical analysis"

    Args:
        name: Competency name as typed or extracted

    Returns:
        Normalized key ("" for None/blank input)
    """
    if not name:
        return ""
    return " ".join(name.split()).casefold()


def name_type_key(name: Optional[str], competency_type: Any) -> Tuple[str, str]:
    """Key used to compare competencies by (name, type)."""
    type_value = getattr(competency_type, "value", competency_type)
    return normalize_name(name), str(type_value)


def format_excluded_competencies(excluded: Iterable[Any]) -> str:
    """
    Format already-linked competencies for the extraction prompt.

    Args:
        excluded: Items with name and type attributes (or dicts with those keys)

    Returns:
        Markdown bullet list, or "None" when nothing is excluded
    """
    lines = []
    for item in excluded:
        if isinstance(item, dict):
            name, competency_type = item.get("name"), item.get("type")
        else:
            name, competency_type = item.name, item.type
        type_value = getattr(competency_type, "value", competency_type)
        lines.append(f"- {name} ({type_value})")

    return "\n".join(lines) if lines else "None"


def format_entity_context(entity_name: Optional[str]) -> str:
    if not entity_name:
        return ""
    return f" The content describes: {entity_name}."


def encode_ndjson(model: BaseModel) -> str:
    """Serialize a model as one line of newline-delimited JSON."""
    return model.model_dump_json(exclude_none=True) + "\n"


def decode_ndjson_line(line: Any) -> Optional[Dict[str, Any]]:
    """
    Parse one line of a newline-delimited JSON stream.

    Blank lines (keep-alives) return None; malformed lines are logged and
    skipped.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8")
    if not line or not line.strip():
        return None
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        logger.warning(f"Skipping malformed stream line: {line[:80]!r}")
        return None
