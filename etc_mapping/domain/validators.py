"""
Typed parameter validation for mapping operations.

One function per parameter type; each raises ValidationError before any
transaction is opened and returns the normalised values.
"""

from __future__ import annotations

from typing import Any

from etc_kernel.domain.paging import check_sort
from etc_kernel.exceptions import ValidationError
from etc_kernel.utils.hashing import canonicalize_json
from etc_mapping.domain.transitions import MappingStatus, parse_status
from etc_mapping.domain.types import (
    DEFAULT_CONFIDENCE,
    DEFAULT_STATUS,
    MAPPING_SORT_FIELDS,
    CreateMappingParams,
    ListMappingsParams,
    UpdateMappingParams,
)

MAX_TYPE_LENGTH = 50
MAX_CREATED_BY_LENGTH = 100
MAX_METADATA_BYTES = 64 * 1024


def normalize_type(field_name: str, value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValidationError(field_name, "must not be empty")
    if len(normalized) > MAX_TYPE_LENGTH:
        raise ValidationError(field_name, f"must be at most {MAX_TYPE_LENGTH} characters")
    return normalized


def check_confidence(confidence: float) -> float:
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValidationError("confidence", "must be a number")
    if not 0.0 <= confidence <= 1.0:
        raise ValidationError("confidence", "must be between 0.0 and 1.0")
    return float(confidence)


def check_entity_id(entity_id: int) -> int:
    if isinstance(entity_id, bool) or not isinstance(entity_id, int) or entity_id <= 0:
        raise ValidationError("mapped_entity_id", "must be a positive integer")
    return entity_id


def check_metadata(metadata: Any) -> dict[str, Any] | None:
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        raise ValidationError("metadata", "must be a JSON object")
    try:
        encoded = canonicalize_json(metadata).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ValidationError("metadata", f"must be JSON serializable: {exc}") from None
    if len(encoded) > MAX_METADATA_BYTES:
        raise ValidationError("metadata", f"must not exceed {MAX_METADATA_BYTES} bytes")
    return metadata


def validate_create_params(params: CreateMappingParams) -> dict[str, Any]:
    """Normalised field values for a new mapping, with defaults applied."""
    if params.created_by is not None and len(params.created_by) > MAX_CREATED_BY_LENGTH:
        raise ValidationError(
            "created_by", f"must be at most {MAX_CREATED_BY_LENGTH} characters"
        )
    return {
        "record_id": params.record_id,
        "mapping_type": normalize_type("mapping_type", params.mapping_type),
        "mapped_entity_id": check_entity_id(params.mapped_entity_id),
        "mapped_entity_type": normalize_type("mapped_entity_type", params.mapped_entity_type),
        "confidence": check_confidence(
            DEFAULT_CONFIDENCE if params.confidence is None else params.confidence
        ),
        "status": DEFAULT_STATUS if params.status is None else parse_status(params.status),
        "metadata": check_metadata(params.metadata),
        "created_by": params.created_by,
    }


def validate_update_params(params: UpdateMappingParams) -> dict[str, Any]:
    """Normalised values for the fields present in ``params``."""
    changes = params.changes()
    if "mapping_type" in changes:
        changes["mapping_type"] = normalize_type("mapping_type", changes["mapping_type"])
    if "mapped_entity_type" in changes:
        changes["mapped_entity_type"] = normalize_type(
            "mapped_entity_type", changes["mapped_entity_type"]
        )
    if "mapped_entity_id" in changes:
        changes["mapped_entity_id"] = check_entity_id(changes["mapped_entity_id"])
    if "confidence" in changes:
        changes["confidence"] = check_confidence(changes["confidence"])
    if "status" in changes:
        changes["status"] = parse_status(changes["status"])
    if "metadata" in changes:
        changes["metadata"] = check_metadata(changes["metadata"])
    return changes


def validate_list_params(params: ListMappingsParams) -> None:
    check_sort(params.sort_by, params.sort_order, MAPPING_SORT_FIELDS)
    for name in ("min_confidence", "max_confidence"):
        value = getattr(params, name)
        if value is not None and not 0.0 <= value <= 1.0:
            raise ValidationError(name, "must be between 0.0 and 1.0")
    if (
        params.min_confidence is not None
        and params.max_confidence is not None
        and params.min_confidence > params.max_confidence
    ):
        raise ValidationError("min_confidence", "must not exceed max_confidence")
    if params.status is not None and not isinstance(params.status, MappingStatus):
        parse_status(params.status)
