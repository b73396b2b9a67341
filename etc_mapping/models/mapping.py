"""
ORM model for record -> entity mappings (table ``etc_mappings``).

Architecture: etc_mapping/models. Imports from etc_kernel.db.base only; the
foreign key names the ``etc_records`` table rather than importing its model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Float, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from etc_kernel.db.base import TimestampedBase, UUIDString, as_utc

if TYPE_CHECKING:
    from etc_mapping.domain.types import Mapping

ACTIVE_INDEX_NAME = "uq_etc_mappings_active_record"


class MappingModel(TimestampedBase):
    __tablename__ = "etc_mappings"

    __table_args__ = (
        # At most one active mapping per record.
        Index(
            ACTIVE_INDEX_NAME,
            "record_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_etc_mappings_record_status", "record_id", "status"),
        Index("ix_etc_mappings_entity", "mapped_entity_type", "mapped_entity_id"),
    )

    record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("etc_records.id"),
        nullable=False,
    )
    mapping_type: Mapped[str] = mapped_column(String(50), nullable=False)
    mapped_entity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mapped_entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> Mapping:
        from etc_mapping.domain.transitions import MappingStatus
        from etc_mapping.domain.types import Mapping

        return Mapping(
            mapping_id=self.id,
            record_id=self.record_id,
            mapping_type=self.mapping_type,
            mapped_entity_id=self.mapped_entity_id,
            mapped_entity_type=self.mapped_entity_type,
            confidence=self.confidence,
            status=MappingStatus(self.status),
            metadata=self.metadata_json,
            created_by=self.created_by,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    @classmethod
    def from_dto(cls, dto: Mapping) -> MappingModel:
        model = cls(id=dto.mapping_id, record_id=dto.record_id, created_by=dto.created_by)
        model.apply(dto)
        return model

    def apply(self, dto: Mapping) -> None:
        self.mapping_type = dto.mapping_type
        self.mapped_entity_id = dto.mapped_entity_id
        self.mapped_entity_type = dto.mapped_entity_type
        self.confidence = dto.confidence
        self.status = dto.status.value
        self.metadata_json = dto.metadata
        if dto.created_at is not None:
            self.created_at = dto.created_at
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at
