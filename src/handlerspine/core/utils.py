"""Small shared helpers: clock and lenient JSON."""

from __future__ import annotations

import json
import time
from typing import Any


def now_in_seconds() -> int:
    """Current UNIX time in whole seconds (feed timestamps are integral)."""
    return int(time.time())


def json_parse_or_null(text: str) -> Any | None:
    """Parse *text* as JSON, returning ``None`` instead of raising.

    >>> json_parse_or_null('{"a": [1, 2]}')
    {'a': [1, 2]}
    >>> json_parse_or_null("{") is None
    True
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def json_stringify(value: Any) -> str:
    """Compact JSON; values JSON cannot represent are rendered with ``str``.

    >>> json_stringify({"a": [1, 2], "b": "c"})
    '{"a":[1,2],"b":"c"}'
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


__all__ = ["now_in_seconds", "json_parse_or_null", "json_stringify"]
