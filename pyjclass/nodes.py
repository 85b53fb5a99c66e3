"""
Base class for decoded model nodes.
"""

import json
from enum import Enum


class Node:
    """Base class for all model nodes."""

    def to_dict(self) -> dict:
        """Convert node to dictionary for JSON serialization."""
        result = {"_type": self.__class__.__name__}
        for key, value in self.__dict__.items():
            if key.startswith("_"):
                continue
            result[key] = _serialize_value(value)
        return result

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def _serialize_value(value):
    """Helper to serialize a value for JSON."""
    if value is None:
        return None
    if isinstance(value, Node):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        # IntFlag / IntEnum values serialize as plain numbers
        return int(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (float, str)):
        return value
    return str(value)
