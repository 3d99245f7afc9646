"""Helpers for reading structured output back from the generation collaborator."""

from __future__ import annotations

import json


def strip_code_fences(raw: str) -> str:
    """Drop ``` fence lines that models like to wrap JSON in"""
    if not raw.lstrip().startswith("```"):
        return raw
    return "\n".join(line for line in raw.split("\n") if not line.strip().startswith("```"))


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object out of a model response.

    Tries the fence-stripped text first, then the outermost ``{...}`` span.
    Returns an empty dict when nothing parses or the result is not an object.
    """
    if not raw:
        return {}

    text = strip_code_fences(raw)
    candidates = [text]
    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(text[start:end])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    return {}
