from __future__ import annotations

import json
import re
from typing import Any, Dict


class JSONParseError(ValueError):
    pass


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", flags=re.DOTALL | re.IGNORECASE)


def _strip_fences(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    return fenced.group(1) if fenced else text


def _first_object(text: str) -> str:
    """
    Slice out the first balanced {...} block, ignoring braces inside strings.
    """
    start = text.find("{")
    if start == -1:
        raise JSONParseError("No '{' found in model output")

    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(text)):
        c = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_str = False
            continue
        if c == '"':
            in_str = True
        elif c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise JSONParseError("Unbalanced JSON braces in model output")


def _repair(text: str) -> str:
    # trailing commas before } or ]
    t = re.sub(r",\s*([}\]])", r"\1", text.strip())
    # Python literals
    t = re.sub(r"\bNone\b", "null", t)
    t = re.sub(r"\bTrue\b", "true", t)
    t = re.sub(r"\bFalse\b", "false", t)
    return t


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of model output.
    Accepts pure JSON, JSON in code fences, or JSON embedded in prose.
    Anything that is not an object raises JSONParseError.
    """
    if not text or not text.strip():
        raise JSONParseError("Empty model output")

    candidate = _strip_fences(text).strip()
    try:
        data = json.loads(candidate)
    except ValueError:
        try:
            data = json.loads(_repair(_first_object(candidate)))
        except ValueError as e:
            raise JSONParseError(f"Failed to parse JSON: {e}\n--- Raw ---\n{text[:800]}") from e

    if not isinstance(data, dict):
        raise JSONParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data
