import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def normalize_json_list(value: Any) -> list[Any]:
    """Return a JSON list column as a Python list.

    Drivers deliver these columns either already decoded (PostgreSQL json)
    or as raw text (text columns, SQLite). ``None``, empty strings and
    undecodable or non-list payloads all normalize to ``[]``.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            decoded = json.loads(value)
        except ValueError:
            logger.warning("json_column.undecodable", extra={"length": len(value)})
            return []
        return list(decoded) if isinstance(decoded, list) else []
    return []
