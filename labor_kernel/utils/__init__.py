"""Utility functions for the labor kernel."""

from labor_kernel.utils.hashing import canonicalize_json, hash_payload
from labor_kernel.utils.idempotency import (
    derive_event_id,
    generate_business_key,
    parse_business_key,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "generate_business_key",
    "parse_business_key",
    "derive_event_id",
]
