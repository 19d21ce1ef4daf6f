import json
import re
from typing import Any, Dict, Optional

from manual_kb.core.exceptions import ParseError
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse a JSON object out of a completion response.

    Tries, in order:
    - the whole (stripped) response
    - the first fenced code block (```json ... ``` or ``` ... ```)
    - the first balanced ``{...}`` span in the response

    Args:
        text: Raw completion text

    Returns:
        The parsed object

    Raises:
        ParseError: If no candidate parses to a JSON object
    """
    if not text or not text.strip():
        raise ParseError("Empty response, no JSON object found")

    cleaned_text = text.strip()

    for candidate in _candidates(cleaned_text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
        LOGGER.debug(f"Discarding JSON candidate of type {type(parsed).__name__}")

    raise ParseError(f"No JSON object found in response: {cleaned_text[:200]!r}")


def _candidates(text: str):
    yield text

    match = _FENCED_BLOCK.search(text)
    if match:
        yield match.group(1).strip()

    span = find_balanced_object(text)
    if span is not None:
        yield span


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` substring, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:idx + 1]
        # Unterminated from this brace; try the next one
        start = text.find("{", start + 1)
    return None
