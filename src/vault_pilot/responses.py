"""Shape-detecting accessors for vaults.fyi responses.

The API answers with a bare array, a bare object, or an envelope of the form
``{"data": [...]}`` depending on the endpoint. Everything that counts or
iterates response items goes through these helpers.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

ApiResponse = Any


def extract_items(response: ApiResponse, key: str = "data") -> list[Any]:
    """Return the item list of a response, or an empty list for bare objects."""
    if isinstance(response, list):
        return response
    if isinstance(response, Mapping):
        items = response.get(key)
        if isinstance(items, list):
            return items
    return []


def count_items(response: ApiResponse, key: str = "data") -> int | None:
    """Number of items in a list-shaped response; None for bare objects."""
    if isinstance(response, list):
        return len(response)
    if isinstance(response, Mapping) and isinstance(response.get(key), list):
        return len(response[key])
    return None


def describe_response(response: ApiResponse, max_keys: int = 5) -> str:
    """One-line summary used when logging endpoint results."""
    count = count_items(response)
    if count is not None:
        return f"Returned {count} items"
    if isinstance(response, Mapping):
        keys = list(response.keys())
        shown = ", ".join(str(k) for k in keys[:max_keys])
        suffix = "..." if len(keys) > max_keys else ""
        return f"Response has {len(keys)} properties: {shown}{suffix}"
    return f"Response of type {type(response).__name__}"
