"""Helpers that turn criterion values into policy setting values."""

from __future__ import annotations

import json
from typing import Any

from nvrules2kw.share import CRITERIA_OP_EQUAL, CRITERIA_OP_NOT_REGEX


def _to_json(obj: Any) -> str:
    text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    return (
        text.replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def normalize_op_name(op: str) -> str:
    """Give symbolic operators a word name."""
    if op == CRITERIA_OP_EQUAL:
        return "equal"
    if op == CRITERIA_OP_NOT_REGEX:
        return "notregex"
    return op


def parse_comma_separated_string(text: str) -> list[str]:
    """Split on commas and strip whitespace around each part."""
    return [part.strip() for part in text.split(",")]


def convert_to_regex_pattern(value: str) -> str:
    """Turn a value with ``*`` and ``?`` wildcards into an anchored regular expression."""
    if "?" not in value and "*" not in value:
        return f"^{value}$"
    pattern = value.replace(".", "\\.").replace("?", ".").replace("*", ".*")
    return f"^{pattern}$"


def parse_values_to_list(text: str) -> str:
    """Return a JSON list of anchored patterns for a comma separated value."""
    if not text.strip():
        return "[]"
    patterns = [convert_to_regex_pattern(v.strip()) for v in text.split(",") if v.strip()]
    return _to_json(patterns) if patterns else "null"


def parse_values_to_map(text: str) -> str:
    """Return a JSON object of key to anchored pattern for ``key=value`` pairs.

    A key without a value matches anything. Raises ValueError on an empty key.
    """
    result: dict[str, str] = {}
    for pair in text.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, value = pair.partition(CRITERIA_OP_EQUAL)
        key = key.strip()
        if not key:
            raise ValueError(f"parseValuesToMap: empty key found in input: {json.dumps(pair)}")
        result[key] = convert_to_regex_pattern(value.strip()) if sep else ".*"
    return _to_json(result)