"""
etc_mapping.domain.types -- frozen DTOs for mappings.

ZERO I/O.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from etc_mapping.domain.transitions import MappingStatus

DEFAULT_CONFIDENCE = 1.0
DEFAULT_STATUS = MappingStatus.ACTIVE


@dataclass(frozen=True)
class Mapping:
    """Immutable snapshot of one record -> entity link."""

    record_id: UUID
    mapping_type: str
    mapped_entity_id: int
    mapped_entity_type: str
    confidence: float = DEFAULT_CONFIDENCE
    status: MappingStatus = DEFAULT_STATUS
    metadata: dict[str, Any] | None = None
    created_by: str | None = None
    mapping_id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == MappingStatus.ACTIVE


@dataclass(frozen=True)
class CreateMappingParams:
    """Input for create. ``confidence`` and ``status`` default when left None."""

    record_id: UUID
    mapping_type: str
    mapped_entity_id: int
    mapped_entity_type: str
    confidence: float | None = None
    status: MappingStatus | str | None = None
    metadata: dict[str, Any] | None = None
    created_by: str | None = None


@dataclass(frozen=True)
class UpdateMappingParams:
    """Partial update: only non-None fields are applied."""

    mapping_type: str | None = None
    mapped_entity_id: int | None = None
    mapped_entity_type: str | None = None
    confidence: float | None = None
    status: MappingStatus | str | None = None
    metadata: dict[str, Any] | None = None

    def changes(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }


MAPPING_SORT_FIELDS = frozenset({"created_at", "confidence", "record_id"})


@dataclass(frozen=True)
class ListMappingsParams:
    page: int = 1
    page_size: int | None = None
    record_id: UUID | None = None
    mapping_type: str | None = None
    mapped_entity_type: str | None = None
    mapped_entity_id: int | None = None
    status: MappingStatus | None = None
    min_confidence: float | None = None
    max_confidence: float | None = None
    created_by: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
