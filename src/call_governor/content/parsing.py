# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
JSON extraction from model output.

Models wrap JSON in prose or code fences. The helpers here find the first
JSON value of the wanted kind and raise MalformedResponseError when there is
none.
"""

import json
import re
from typing import Any, cast

from ..exceptions import MalformedResponseError

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_DECODER = json.JSONDecoder()


def _candidates(text: str) -> list[str]:
    fenced = [m.group(1).strip() for m in _FENCE_RE.finditer(text)]
    return [*fenced, text]


def _first_value(text: str, openers: str) -> Any | None:
    for start, char in enumerate(text):
        if char not in openers:
            continue
        try:
            value, _ = _DECODER.raw_decode(text, start)
        except ValueError:
            continue
        return value
    return None


def extract_json(text: str, allow_array: bool = False) -> dict[str, Any] | list[Any]:
    """
    Return the first JSON object (or array, when allowed) found in text.

    Fenced blocks are tried before the surrounding prose.

    Raises:
        MalformedResponseError: If no JSON value of the wanted kind is found
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("Empty model output", raw=text)

    openers = "{[" if allow_array else "{"
    for candidate in _candidates(text):
        value = _first_value(candidate, openers)
        if isinstance(value, dict) or (allow_array and isinstance(value, list)):
            return value

    raise MalformedResponseError("No JSON object found in model output", raw=text)


def extract_json_object(text: str) -> dict[str, Any]:
    """Return the first JSON object in text."""
    return cast(dict[str, Any], extract_json(text))
