"""
Record service -- single-record CRUD for toll records.

Create and update validate first (no transaction opened on failure), then
run the fingerprint duplicate check and the write in one transaction.
Update regenerates the fingerprint and excludes the record itself from
the duplicate check.  Delete is soft.
"""

from __future__ import annotations

import dataclasses
from uuid import UUID

from etc_ingestion.domain.types import ListRecordsParams, TollRecord, UpdateRecordParams
from etc_ingestion.domain.validators import (
    FieldViolation,
    collect_violations,
    validate_list_records_params,
    validate_record,
)
from etc_ingestion.gateway.base import RecordGateway
from etc_kernel.db.gateway import transaction
from etc_kernel.domain.clock import Clock
from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.domain.paging import Page, normalize_paging
from etc_kernel.exceptions import DuplicateFingerprintError, RecordNotFoundError
from etc_kernel.logging_config import get_logger

logger = get_logger("ingestion.record_service")


class RecordService:
    def __init__(
        self,
        records: RecordGateway,
        clock: Clock,
        *,
        default_page_size: int = 50,
        max_page_size: int = 1000,
    ):
        self._records = records
        self._clock = clock
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def create_record(
        self, record: TollRecord, ctx: OperationContext | None = None
    ) -> TollRecord:
        validate_record(record, self._clock.today())
        now = self._clock.now()
        draft = dataclasses.replace(record, created_at=now, updated_at=now, deleted_at=None)

        with transaction(self._records, ctx) as tx:
            if tx.check_duplicate_fingerprint(draft.fingerprint):
                raise DuplicateFingerprintError(draft.fingerprint)
            created = tx.create(draft)

        logger.info(
            "record_created",
            extra={"record_id": str(created.record_id), "fingerprint": created.fingerprint},
        )
        return created

    def get_record(self, record_id: UUID, ctx: OperationContext | None = None) -> TollRecord:
        ensure_context(ctx).raise_if_cancelled()
        record = self._records.get_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def get_record_by_fingerprint(
        self, fingerprint: str, ctx: OperationContext | None = None
    ) -> TollRecord | None:
        ensure_context(ctx).raise_if_cancelled()
        return self._records.get_by_fingerprint(fingerprint)

    def update_record(
        self,
        record_id: UUID,
        params: UpdateRecordParams,
        ctx: OperationContext | None = None,
    ) -> TollRecord:
        changes = params.changes()
        today = self._clock.today()

        with transaction(self._records, ctx) as tx:
            existing = tx.get_by_id(record_id)
            if existing is None:
                raise RecordNotFoundError(record_id)

            updated = dataclasses.replace(existing, updated_at=self._clock.now(), **changes)
            validate_record(updated, today)
            if tx.check_duplicate_fingerprint(updated.fingerprint, exclude_ids=[record_id]):
                raise DuplicateFingerprintError(updated.fingerprint)
            result = tx.update(updated)

        logger.info(
            "record_updated",
            extra={"record_id": str(record_id), "fields": sorted(changes)},
        )
        return result

    def delete_record(self, record_id: UUID, ctx: OperationContext | None = None) -> None:
        with transaction(self._records, ctx) as tx:
            if tx.get_by_id(record_id) is None:
                raise RecordNotFoundError(record_id)
            tx.delete(record_id, self._clock.now())
        logger.info("record_deleted", extra={"record_id": str(record_id)})

    def list_records(
        self, params: ListRecordsParams, ctx: OperationContext | None = None
    ) -> Page[TollRecord]:
        ensure_context(ctx).raise_if_cancelled()
        page, size = normalize_paging(
            params.page,
            params.page_size,
            default_size=self._default_page_size,
            max_size=self._max_page_size,
        )
        validate_list_records_params(params)
        items, total = self._records.list(params, page, size)
        return Page(tuple(items), total, page, size)

    def validate(self, record: TollRecord) -> list[FieldViolation]:
        """Every rule ``record`` breaks; empty when valid."""
        return collect_violations(record, self._clock.today())

    def health_check(self, ctx: OperationContext | None = None) -> None:
        self._records.ping(ctx)
