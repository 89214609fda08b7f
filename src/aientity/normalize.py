from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Any

from .errors import MalformedResponseError

DEFAULT_WRAPPER_KEYS: tuple[str, ...] = ("data", "results")

# A reply that is exactly one fenced block, with an optional language tag.
_FENCED = re.compile(r"^\s*(?:```|~~~)[a-zA-Z0-9/_ .-]*\n(.*?)\n?[ \t]*(?:```|~~~)\s*$", re.DOTALL)


def _unfence(raw: str) -> str:
    match = _FENCED.match(raw)
    return match.group(1) if match else raw


def _preview(raw: str) -> str:
    return raw if len(raw) <= 120 else raw[:120] + "..."


def parse_reply(raw: str) -> Any:
    """Parse the model's content as JSON, tolerating one surrounding code fence."""
    if not isinstance(raw, str):
        raise MalformedResponseError(f"Model reply must be text, got {type(raw).__name__}")
    try:
        return json.loads(_unfence(raw))
    except ValueError as exc:
        raise MalformedResponseError(f"Model reply is not valid JSON: {_preview(raw)!r}") from exc


def to_object(raw: str) -> dict[str, Any]:
    value = parse_reply(raw)
    if not isinstance(value, dict):
        raise MalformedResponseError(
            f"Expected a JSON object from the model, got {type(value).__name__}"
        )
    return value


def select_array(value: Any, wrapper_keys: Sequence[str] = DEFAULT_WRAPPER_KEYS) -> list[Any]:
    """Locate the list the model intended inside an already parsed reply.

    Order: the root itself when it is an array; otherwise the value of the
    first wrapper key present on the root object; otherwise the root wrapped
    as a one-element list.  A wrapper key is selected by presence, so a key
    holding a non-array is an error rather than a reason to keep looking.
    """
    if isinstance(value, list):
        return value
    selected: Any = [value]
    if isinstance(value, dict):
        for key in wrapper_keys:
            if key in value:
                selected = value[key]
                break
    if not isinstance(selected, list):
        raise MalformedResponseError(
            f"Expected JSON array response, got {type(selected).__name__}"
        )
    return selected


def to_array(raw: str, wrapper_keys: Sequence[str] = DEFAULT_WRAPPER_KEYS) -> list[Any]:
    return select_array(parse_reply(raw), wrapper_keys)
