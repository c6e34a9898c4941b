"""Utilities for normalizing data structures for JSON and YAML output."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel


def normalize_for_json(obj: Any) -> Any:
    """Normalize an object for JSON serialization.

    Converts Pydantic models to dicts (by alias, without unset values), Enum
    values to their values, datetimes to ISO strings and durations to seconds,
    while recursively processing collections.

    Args:
        obj: The object to normalize.

    Returns:
        A JSON-serializable version of the object.
    """
    # Handle Enum, before primitives so str based enums lose their type
    if isinstance(obj, Enum):
        return obj.value

    # Handle primitives
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, datetime):
        return obj.isoformat()

    if isinstance(obj, timedelta):
        return obj.total_seconds()

    # Handle Pydantic BaseModel
    if isinstance(obj, BaseModel):
        return normalize_for_json(
            obj.model_dump(mode="json", by_alias=True, exclude_none=True)
        )

    # Handle dict
    if isinstance(obj, dict):
        return {key: normalize_for_json(value) for key, value in obj.items()}

    # Handle tuple and list
    if isinstance(obj, (tuple, list)):
        return [normalize_for_json(item) for item in obj]

    # For any other type, return as-is
    return obj
