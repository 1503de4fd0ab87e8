from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"^\s*```[\w+-]*[ \t]*\n?(?P<body>.*?)\n?[ \t]*```\s*$", re.DOTALL)


def strip_code_fences(raw: str) -> str:
    """Remove one pair of surrounding triple-backtick fences (with optional language tag).

    Text that is not wrapped in fences is returned stripped but otherwise unchanged.
    """
    match = _FENCE.match(raw)
    if match:
        return match.group("body").strip()
    return raw.strip()


def parse_json_object(raw: str, error_cls: type[Exception]) -> dict[str, Any]:
    """Decode a model reply as one JSON object, raising error_cls on failure.

    Fences are stripped first. No partial recovery is attempted: anything that
    is not exactly one JSON object raises error_cls with the cause chained.
    """
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise error_cls(f"Malformed JSON in model output: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise error_cls("Expected JSON object in model output")
    return data
