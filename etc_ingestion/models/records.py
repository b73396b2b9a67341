"""
ORM models for toll records and import sessions.

Contract:
    TollRecordModel persists one toll transaction with its fingerprint and
    soft-delete marker.  A partial unique index over ``fingerprint`` where
    ``deleted_at IS NULL`` backs up the service-level duplicate check.
    ImportSessionModel persists session counters and the row-error log.

Architecture: etc_ingestion/models. Imports from etc_kernel.db.base only.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, BigInteger, Date, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from etc_kernel.db.base import TimestampedBase, as_utc

if TYPE_CHECKING:
    from etc_ingestion.domain.types import ImportSession, TollRecord


class TollRecordModel(TimestampedBase):
    """One toll transaction (table ``etc_records``)."""

    __tablename__ = "etc_records"

    __table_args__ = (
        Index(
            "uq_etc_records_fingerprint_live",
            "fingerprint",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_etc_records_use_date", "use_date"),
        Index("ix_etc_records_card", "etc_card_number"),
    )

    use_date: Mapped[date] = mapped_column(Date, nullable=False)
    use_time: Mapped[str] = mapped_column(String(8), nullable=False)
    entrance_ic: Mapped[str] = mapped_column(String(100), nullable=False)
    exit_ic: Mapped[str] = mapped_column(String(100), nullable=False)
    toll_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    car_number: Mapped[str] = mapped_column(String(50), nullable=False)
    etc_card_number: Mapped[str] = mapped_column(String(30), nullable=False)
    etc_num: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dtako_row_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dto(self) -> TollRecord:
        from etc_ingestion.domain.types import TollRecord

        return TollRecord(
            record_id=self.id,
            use_date=self.use_date,
            use_time=self.use_time,
            entrance_ic=self.entrance_ic,
            exit_ic=self.exit_ic,
            toll_amount=self.toll_amount,
            car_number=self.car_number,
            etc_card_number=self.etc_card_number,
            etc_num=self.etc_num,
            dtako_row_id=self.dtako_row_id,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            deleted_at=as_utc(self.deleted_at),
        )

    @classmethod
    def from_dto(cls, dto: TollRecord) -> TollRecordModel:
        model = cls(id=dto.record_id)
        model.apply(dto)
        return model

    def apply(self, dto: TollRecord) -> None:
        """Copy every mutable field (fingerprint included) from ``dto``."""
        self.use_date = dto.use_date
        self.use_time = dto.use_time
        self.entrance_ic = dto.entrance_ic
        self.exit_ic = dto.exit_ic
        self.toll_amount = dto.toll_amount
        self.car_number = dto.car_number
        self.etc_card_number = dto.etc_card_number
        self.etc_num = dto.etc_num
        self.dtako_row_id = dto.dtako_row_id
        self.fingerprint = dto.fingerprint
        if dto.created_at is not None:
            self.created_at = dto.created_at
        if dto.updated_at is not None:
            self.updated_at = dto.updated_at
        self.deleted_at = dto.deleted_at


def _row_errors_to_json(errors: list) -> list[dict[str, Any]]:
    return [
        {
            "row_number": e.row_number,
            "error_kind": e.error_kind.value,
            "message": e.message,
            "raw_data": e.raw_data,
        }
        for e in errors
    ]


def _json_to_row_errors(data: list | None) -> list:
    from etc_ingestion.domain.types import ImportRowError, RowErrorKind

    if not data:
        return []
    return [
        ImportRowError(
            row_number=item["row_number"],
            error_kind=RowErrorKind(item["error_kind"]),
            message=item["message"],
            raw_data=item.get("raw_data", ""),
        )
        for item in data
    ]


class ImportSessionModel(TimestampedBase):
    """One import attempt (table ``import_sessions``)."""

    __tablename__ = "import_sessions"

    __table_args__ = (
        Index("ix_import_sessions_account", "account_type", "account_id"),
        Index("ix_import_sessions_status", "status"),
    )

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    account_id: Mapped[str] = mapped_column(String(50), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    total_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duplicate_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    row_errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dto(self) -> ImportSession:
        from etc_ingestion.domain.types import ImportSession, ImportSessionStatus

        return ImportSession(
            session_id=self.id,
            account_type=self.account_type,
            account_id=self.account_id,
            file_name=self.file_name,
            file_size=self.file_size,
            status=ImportSessionStatus(self.status),
            total_rows=self.total_rows,
            processed_rows=self.processed_rows,
            success_rows=self.success_rows,
            error_rows=self.error_rows,
            duplicate_rows=self.duplicate_rows,
            row_errors=_json_to_row_errors(self.row_errors),
            error_message=self.error_message,
            created_by=self.created_by,
            created_at=as_utc(self.created_at),
            started_at=as_utc(self.started_at),
            completed_at=as_utc(self.completed_at),
        )

    @classmethod
    def from_dto(cls, dto: ImportSession) -> ImportSessionModel:
        model = cls(
            id=dto.session_id,
            account_type=dto.account_type,
            account_id=dto.account_id,
            file_name=dto.file_name,
            created_by=dto.created_by,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        model.apply(dto)
        return model

    def apply(self, dto: ImportSession) -> None:
        self.file_size = dto.file_size
        self.status = dto.status.value
        self.total_rows = dto.total_rows
        self.processed_rows = dto.processed_rows
        self.success_rows = dto.success_rows
        self.error_rows = dto.error_rows
        self.duplicate_rows = dto.duplicate_rows
        self.row_errors = _row_errors_to_json(dto.row_errors)
        self.error_message = dto.error_message
        self.started_at = dto.started_at
        self.completed_at = dto.completed_at
