import json
from typing import Any


def to_json(data: Any) -> str:
    """Serialize a derived-score payload for a Text column.

    Keys are sorted so recomputing an unchanged PCI instance writes identical text.
    """
    return json.dumps(data, ensure_ascii=True, sort_keys=True, default=str)


def from_json(value: str | None, fallback: Any) -> Any:
    if not value:
        return fallback
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return fallback
