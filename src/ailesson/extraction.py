"""Pull a JSON object out of free-form model output.

Two stages: `find_json_candidates` picks the substrings worth parsing
(fenced code blocks first, then the whole response), and `parse_first_object`
returns the first well-formed JSON object inside a candidate.
"""
import json
import re
from typing import Any

from ailesson.errors import JSONExtractionError

FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

_decoder = json.JSONDecoder()


def find_json_candidates(text: str) -> list[str]:
    text = text.strip()
    candidates = [m.group(1).strip() for m in FENCE_RE.finditer(text)]
    candidates.append(text)
    return [c for c in candidates if c]


def parse_first_object(candidate: str) -> dict[str, Any] | None:
    """Return the first decodable JSON object in `candidate`, or None."""
    start = candidate.find("{")
    while start != -1:
        try:
            obj, _ = _decoder.raw_decode(candidate, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(obj, dict):
                return obj
        start = candidate.find("{", start + 1)
    return None


def extract_json(text: str | None) -> dict[str, Any]:
    if not text or not text.strip():
        raise JSONExtractionError("Empty response from AI provider")
    for candidate in find_json_candidates(text):
        obj = parse_first_object(candidate)
        if obj is not None:
            return obj
    raise JSONExtractionError("No valid JSON object found in AI provider response")
