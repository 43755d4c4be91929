"""Recover a JSON value from free-text model output.

Models routinely wrap the JSON they were asked for in prose or markdown
fences. ``extract_json`` finds the first opening delimiter of the requested
shape, walks forward to its balanced close and parses just that span.
"""

import json
import logging
from typing import Any, Literal

logger = logging.getLogger(__name__)

Shape = Literal["array", "object"]

_DELIMITERS: dict[str, tuple[str, str]] = {
    "array": ("[", "]"),
    "object": ("{", "}"),
}


def find_balanced_span(text: str, opener: str, closer: str) -> str | None:
    """Return the substring from the first ``opener`` to its matching ``closer``.

    Delimiters inside JSON string literals are not counted.
    """
    start = text.find(opener)
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def extract_json(raw_text: str | None, shape: Shape) -> Any | None:
    """Parse the first balanced array/object in ``raw_text``.

    Returns ``None`` when there is no balanced span or it is not valid JSON.
    Never raises.
    """
    if not raw_text or shape not in _DELIMITERS:
        return None
    opener, closer = _DELIMITERS[shape]
    span = find_balanced_span(raw_text, opener, closer)
    if span is None:
        logger.debug(f"No balanced {shape} found in model output")
        return None
    try:
        return json.loads(span)
    except ValueError:
        logger.debug(f"Balanced {shape} span is not valid JSON")
        return None
