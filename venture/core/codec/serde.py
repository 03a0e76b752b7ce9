# venture/core/codec/serde.py
from __future__ import annotations

import datetime as dt
import traceback as tb
from typing import Any, Dict, List, Union

# Anything json.dumps accepts without a custom encoder
Json = Union[None, bool, int, float, str, List['Json'], Dict[str, 'Json']]


def exception_to_json(ex: BaseException) -> Dict[str, Json]:
    """Failure payload stored on a failed job: ``{type, message, traceback}``."""
    return {
        'type': type(ex).__name__,
        'message': str(ex),
        'traceback': ''.join(tb.format_exception(type(ex), ex, ex.__traceback__)),
    }


def to_jsonable(value: Any) -> Json:
    """
    Convert plain Python values into JSON-compatible values.

    Datetimes become ISO strings, timedeltas become seconds, sets and tuples
    become sorted/ordered lists. Anything else falls back to ``str()``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    if isinstance(value, (set, frozenset)):
        return [to_jsonable(v) for v in sorted(value, key=str)]
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return str(value)
