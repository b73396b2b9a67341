"""
Deterministic hashing utilities.

All hashing in the ETC system must be deterministic and reproducible.
Record fingerprints and settings checksums go through this module.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, no whitespace, and non-native types (Decimal, datetime,
    UUID, bytes) are rendered consistently.  Non-ASCII text is kept as-is so
    that the byte length matches what the store receives.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_serializer,
    )


def sha256_hex(text: str) -> str:
    """Hex-encoded SHA-256 (64 lower-case characters) of UTF-8 ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    """SHA-256 of the canonical JSON form of ``payload``."""
    return sha256_hex(canonicalize_json(payload))
