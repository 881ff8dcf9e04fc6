"""Reduce whatever the webhook replied with to plain text."""
from __future__ import annotations

import json
from typing import Any, Iterable, Optional, Sequence

from config.settings import get_settings


REPLY_FIELDS: Sequence[str] = ("message", "response", "text", "output")

STREAM_ITEM_TYPE = "item"


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _fields(fields: Optional[Iterable[str]]) -> Sequence[str]:
    if fields is not None:
        return tuple(fields)
    return get_settings().reply_fields or REPLY_FIELDS


def reduce_item(item: Any, fields: Optional[Iterable[str]] = None) -> Optional[str]:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for name in _fields(fields):
            value = item.get(name)
            if value:
                return value if isinstance(value, str) else _dumps(value)
    return None


def _join_items(items: list, fields: Sequence[str]) -> str:
    parts = []
    for item in items:
        reduced = reduce_item(item, fields)
        parts.append(reduced if reduced is not None else _dumps(item))
    return "\n\n".join(parts)


def extract_reply(payload: Any, fields: Optional[Iterable[str]] = None) -> str:
    """Reduce a whole JSON reply body to the text shown to the user."""
    names = _fields(fields)
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        reduced = reduce_item(payload, names)
        if reduced is not None:
            return reduced
    if isinstance(payload, list) and payload:
        return _join_items(payload, names)
    return _dumps(payload)


def extract_line(line: str, fields: Optional[Iterable[str]] = None) -> str:
    """Reduce one streamed line; anything unrecognised passes through raw."""
    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        return line

    names = _fields(fields)
    if isinstance(event, dict) and event.get("type") == STREAM_ITEM_TYPE and event.get("content"):
        content = event["content"]
        return content if isinstance(content, str) else _dumps(content)
    if isinstance(event, list) and event:
        return _join_items(event, names)

    reduced = reduce_item(event, names)
    return reduced if reduced else line
