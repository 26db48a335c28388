"""Common helpers for the action-dispatching endpoints."""
from __future__ import annotations

from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from cuidar.core.errors import InvalidRequest

T = TypeVar("T")


def parse_action(adapter: TypeAdapter[T], body: Any) -> T:
    """Validate a request body against a tagged union of actions."""

    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")
    try:
        return adapter.validate_python(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        if first["type"] in {"union_tag_invalid", "union_tag_not_found"}:
            raise InvalidRequest("Unknown action") from exc
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidRequest(f"{location}: {first['msg']}" if location else first["msg"]) from exc
