"""
Deterministic hashing utilities.

Payload hashes and document hashes must be reproducible across processes
so that regeneration can detect unchanged source data and pre-flight
checks can detect tampered documents.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Fixed-point text keeps 100 and 100.00 distinct from exponent forms
        return format(obj, "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, whitespace is removed and special types (Decimal,
    datetime, UUID) are rendered consistently.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute the hex SHA-256 of a payload's canonical JSON form."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_text(text: str) -> str:
    """Compute the hex SHA-256 of a rendered document."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
