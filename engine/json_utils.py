import json
from dataclasses import asdict, is_dataclass
from enum import Enum


def _default(value):
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if isinstance(value, bytes):
        return f"<{len(value)} bytes>"
    return repr(value)


def safe_json_dumps(payload, **kwargs):
    """Serialize ``payload`` without ever raising on exotic values."""
    kwargs.setdefault("default", _default)
    try:
        return json.dumps(payload, **kwargs)
    except (TypeError, ValueError):
        return json.dumps({"unserializable": repr(payload)})
