"""
Extraction of JSON payloads from raw LLM text.

Models wrap JSON in markdown fences, prepend chatter, or emit several objects
back to back without a separating comma. These helpers cut the text down to
the outermost array or object before handing it to json.loads.
"""
from __future__ import annotations

import json
import re
from typing import Any

from loguru import logger

from unitforge.errors import MalformedResponseError

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
_ADJACENT_OBJECTS = re.compile(r"\}\s*\{")


def clean_json_string(text: str) -> str:
    """
    Reduce model output to the substring that should hold the JSON payload.

    Whichever of '[' or '{' appears first decides whether we slice to the last
    ']' or the last '}'. Objects emitted back to back get a comma between them.
    """
    cleaned = _FENCE_PATTERN.sub("", text or "").strip()

    first_array = cleaned.find("[")
    first_object = cleaned.find("{")

    if first_array != -1 and (first_object == -1 or first_array < first_object):
        last = cleaned.rfind("]")
        if last != -1:
            cleaned = cleaned[first_array : last + 1]
    elif first_object != -1:
        last = cleaned.rfind("}")
        if last != -1:
            cleaned = cleaned[first_object : last + 1]

    return _ADJACENT_OBJECTS.sub("}, {", cleaned)


def parse_json_response(text: str) -> Any:
    """
    Parse model output into Python data.

    Raises:
        MalformedResponseError: When nothing parseable is found
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty response from model", raw=text)

    cleaned = clean_json_string(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        # Back-to-back objects at top level become a list once bracketed
        if cleaned.startswith("{") and "}, {" in cleaned:
            try:
                return json.loads(f"[{cleaned}]")
            except json.JSONDecodeError:
                pass
        logger.debug(f"Unparseable model output: {cleaned[:200]!r}")
        raise MalformedResponseError(f"Invalid JSON from model: {e}", raw=text) from e


def parse_json_object(text: str, required_key: str | None = None) -> dict[str, Any]:
    """Parse model output that must be a single JSON object."""
    data = parse_json_response(text)
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}", raw=text
        )
    if required_key and required_key not in data:
        raise MalformedResponseError(f"Missing '{required_key}' in response", raw=text)
    return data


def parse_json_list(text: str) -> list[Any]:
    """Parse model output that should be an array; a lone object is wrapped."""
    data = parse_json_response(text)
    if isinstance(data, dict):
        for key in ("items", "steps", "activities", "data"):
            if isinstance(data.get(key), list):
                return data[key]
        return [data]
    if not isinstance(data, list):
        raise MalformedResponseError(
            f"Expected a JSON array, got {type(data).__name__}", raw=text
        )
    return data
