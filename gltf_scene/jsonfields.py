"""
Typed optional-field access for the parsed glTF JSON tree.

Every getter returns ``default`` when the key is absent or holds a value
of the wrong type, so callers never branch on ``isinstance`` themselves.
JSON booleans are never accepted as numbers.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_int(obj: Any, key: str, default: Optional[int] = None) -> Optional[int]:
    if not isinstance(obj, dict):
        return default
    value = obj.get(key)
    return value if _is_int(value) else default


def get_index(obj: Any, key: str) -> Optional[int]:
    """Return a non-negative integer index, or None."""
    value = get_int(obj, key)
    if value is None or value < 0:
        return None
    return value


def get_float(obj: Any, key: str, default: float) -> float:
    if not isinstance(obj, dict):
        return default
    value = obj.get(key)
    return float(value) if _is_number(value) else default


def get_str(obj: Any, key: str, default: Optional[str] = None) -> Optional[str]:
    if not isinstance(obj, dict):
        return default
    value = obj.get(key)
    return value if isinstance(value, str) else default


def get_list(obj: Any, key: str) -> Optional[List[Any]]:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    return value if isinstance(value, list) else None


def get_dict(obj: Any, key: str) -> Optional[Dict[str, Any]]:
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    return value if isinstance(value, dict) else None


def get_floats(obj: Any, key: str, length: int) -> Optional[Tuple[float, ...]]:
    """Return a tuple of exactly ``length`` numbers, or None on any mismatch."""
    values = get_list(obj, key)
    if values is None or len(values) != length:
        return None
    if not all(_is_number(v) for v in values):
        return None
    return tuple(float(v) for v in values)


def item_at(items: Optional[Sequence[Any]], index: Optional[int]) -> Any:
    """Bounds-checked lookup; None for a missing list or an out-of-range index."""
    if items is None or index is None or index < 0 or index >= len(items):
        return None
    return items[index]
