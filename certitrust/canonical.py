"""
Shell ID generation

A Shell ID is the SHA-256 digest of a record after it has been normalized and
serialized canonically. Stored Shell IDs are compared by equality, so the
normalization rules, the serialization and the digest must never change.
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def normalize_value(value: Any) -> Any:
    """Recursively lower-case/trim strings and drop empty entries"""
    if isinstance(value, str):
        return value.lower().strip()

    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value if not _is_blank(v)]

    if isinstance(value, dict):
        normalized = {}
        for key, item in value.items():
            if _is_blank(item):
                continue
            item = normalize_value(item)
            # Containers that normalized away to nothing are dropped too
            if isinstance(item, (dict, list)) and not item:
                continue
            normalized[key] = item
        return normalized

    return value


def canonical_json(value: Any) -> str:
    """Normalized value serialized with sorted keys and no whitespace"""
    if isinstance(value, BaseModel):
        value = value.model_dump()
    return json.dumps(
        normalize_value(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(value: Any) -> str:
    """Generate the Shell ID (64 hex chars) for any JSON-like value"""
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()
