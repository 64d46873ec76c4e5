"""
Structured output recovery from free-form model text.

Models asked for JSON still wrap it in prose or code fences. Recovery
tries, in order:

1. the whole text,
2. the inside of the first fenced code block,
3. the first object- or array-shaped substring that decodes.

Only objects and arrays count as structured output.
"""
from __future__ import annotations

import json
import re
from typing import Any, Optional

from app.config import get_logger

logger = get_logger("services.recovery")

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_DECODER = json.JSONDecoder()


def _structured(value: Any) -> bool:
    return isinstance(value, (dict, list))


def _parse_whole(text: str) -> Optional[Any]:
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return value if _structured(value) else None


def _parse_embedded(text: str) -> Optional[Any]:
    """Decode the first balanced {...} or [...] found by scanning forward."""
    index = 0
    while True:
        starts = [pos for pos in (text.find("{", index), text.find("[", index)) if pos != -1]
        if not starts:
            return None
        start = min(starts)
        try:
            value, _ = _DECODER.raw_decode(text, start)
        except RecursionError:
            # Pathologically nested text counts as a miss
            return None
        except ValueError:
            index = start + 1
            continue
        if _structured(value):
            return value
        index = start + 1


def recover_structured_output(text: str | None) -> Optional[Any]:
    """
    Recover a JSON object or array from model output.

    Args:
        text: Raw model output

    Returns:
        The decoded dict or list, or None when nothing structured is found

    Example:
        >>> recover_structured_output('Here: ```json\\n{"a": 1}\\n``` done')
        {'a': 1}
    """
    if not text:
        return None
    stripped = text.strip()

    value = _parse_whole(stripped)
    if value is not None:
        return value

    fenced = _FENCED_BLOCK.search(stripped)
    if fenced:
        value = _parse_whole(fenced.group(1).strip())
        if value is not None:
            return value

    value = _parse_embedded(stripped)
    if value is None:
        logger.debug("No structured output found in %d characters of model text", len(stripped))
    return value
