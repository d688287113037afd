"""
Serialization Utilities

This module provides helpers for turning domain records into plain
dictionaries and JSON, with support for enums, datetimes and nested
dataclasses.
"""

import json
import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import is_dataclass, fields


def serialize(obj: Any, exclude_none: bool = False) -> Any:
    """
    Serialize an object into JSON-compatible Python values.

    Args:
        obj: The object to serialize
        exclude_none: Whether to drop None values from mappings

    Returns:
        Serialized value
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple)):
        return [serialize(item, exclude_none) for item in obj]

    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if exclude_none and value is None:
                continue
            result[str(key)] = serialize(value, exclude_none)
        return result

    # Records that know their own shape win over generic dataclass handling
    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return obj.to_dict()

    if is_dataclass(obj):
        return {
            f.name: serialize(getattr(obj, f.name), exclude_none)
            for f in fields(obj)
            if not (exclude_none and getattr(obj, f.name) is None)
        }

    return str(obj)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation
        exclude_none: Whether to exclude None values

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False, default=str)


def utc_now() -> datetime.datetime:
    """Current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """
    Parse an ISO timestamp into an aware datetime.

    Naive values are taken to be UTC so they compare with ``utc_now()``.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


class SerializableMixin:
    """
    Mixin that provides serialization capabilities to a record.

    Classes using this mixin define ``__serializable_fields__``, the
    attribute names written by ``to_dict``.
    """

    __serializable_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for field_name in self.__serializable_fields__:
            if hasattr(self, field_name):
                result[field_name] = serialize(getattr(self, field_name))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)
