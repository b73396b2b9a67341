"""
MappingService -- governed lifecycle for record -> entity mappings.

Responsibility:
    Create, update, transition and delete mappings while keeping the status
    table and the one-active-mapping-per-record rule.

Architecture position:
    Mapping > Services.  Writes through the mapping gateway; checks record
    existence through the record gateway (read-only, unscoped).  The
    ``etc_mappings.record_id`` foreign key backs the existence check; a
    partial unique index on active mappings backs the exclusivity check.

Invariants enforced:
    - Parameters are validated before any transaction opens.
    - Status changes follow ALLOWED_TRANSITIONS; same-status requests fail.
    - Any write that leaves a mapping ``active`` first checks that no other
      mapping on the same record is active.

Failure modes:
    - ValidationError / InvalidStatusTransitionError.
    - RecordNotFoundError, MappingNotFoundError.
    - MappingConflictError (a DuplicateError).
    - PersistenceError / TransactionError from the gateway.
    Every failure after ``begin_tx`` is rolled back before it propagates.
"""

from __future__ import annotations

import dataclasses
from uuid import UUID

from etc_ingestion.gateway.base import RecordGateway
from etc_kernel.db.gateway import transaction
from etc_kernel.domain.clock import Clock
from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.domain.paging import Page, normalize_paging
from etc_kernel.exceptions import (
    MappingConflictError,
    MappingNotFoundError,
    RecordNotFoundError,
)
from etc_kernel.logging_config import LogContext, get_logger
from etc_mapping.domain.transitions import MappingStatus, check_transition, parse_status
from etc_mapping.domain.types import (
    CreateMappingParams,
    ListMappingsParams,
    Mapping,
    UpdateMappingParams,
)
from etc_mapping.domain.validators import (
    validate_create_params,
    validate_list_params,
    validate_update_params,
)
from etc_mapping.gateway.mapping_gateway import MappingGateway

logger = get_logger("mapping.mapping_service")


class MappingService:
    """
    Mapping lifecycle operations.

    Guarantees:
        - At most one mapping per record is ``active`` after any successful
          call.  Concurrent writers that both pass the check are stopped by
          the partial unique index on ``etc_mappings``.

    Non-goals:
        - No automatic matching of records to entities.
    """

    def __init__(
        self,
        mappings: MappingGateway,
        records: RecordGateway,
        clock: Clock,
        *,
        default_page_size: int = 50,
        max_page_size: int = 1000,
    ):
        self._mappings = mappings
        self._records = records
        self._clock = clock
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def create_mapping(
        self, params: CreateMappingParams, ctx: OperationContext | None = None
    ) -> Mapping:
        values = validate_create_params(params)
        now = self._clock.now()
        mapping = Mapping(**values, created_at=now, updated_at=now)

        with transaction(self._mappings, ctx) as tx:
            if self._records.get_by_id(mapping.record_id) is None:
                raise RecordNotFoundError(mapping.record_id)
            existing = tx.get_active_mapping(mapping.record_id)
            if existing is not None:
                raise MappingConflictError(mapping.record_id, existing.mapping_id)
            created = tx.create(mapping)

        logger.info(
            "mapping_created",
            extra={
                "mapping_id": str(created.mapping_id),
                "record_id": str(created.record_id),
                "mapping_type": created.mapping_type,
                "status": created.status.value,
            },
        )
        return created

    def get_mapping(self, mapping_id: UUID, ctx: OperationContext | None = None) -> Mapping:
        ensure_context(ctx).raise_if_cancelled()
        mapping = self._mappings.get_by_id(mapping_id)
        if mapping is None:
            raise MappingNotFoundError(mapping_id)
        return mapping

    def get_mappings_for_record(
        self, record_id: UUID, ctx: OperationContext | None = None
    ) -> list[Mapping]:
        ensure_context(ctx).raise_if_cancelled()
        return self._mappings.get_by_record_id(record_id)

    def update_mapping(
        self,
        mapping_id: UUID,
        params: UpdateMappingParams,
        ctx: OperationContext | None = None,
    ) -> Mapping:
        changes = validate_update_params(params)

        with LogContext.bind(mapping_id=mapping_id):
            with transaction(self._mappings, ctx) as tx:
                existing = tx.get_by_id(mapping_id)
                if existing is None:
                    raise MappingNotFoundError(mapping_id)

                new_status = changes.get("status", existing.status)
                if new_status != existing.status:
                    check_transition(existing.status, new_status)
                else:
                    changes.pop("status", None)

                if new_status == MappingStatus.ACTIVE:
                    self._ensure_no_other_active(tx, existing)

                updated = dataclasses.replace(existing, updated_at=self._clock.now(), **changes)
                result = tx.update(updated)

            logger.info("mapping_updated", extra={"fields": sorted(changes)})
        return result

    def update_status(
        self,
        mapping_id: UUID,
        status: MappingStatus | str,
        ctx: OperationContext | None = None,
    ) -> Mapping:
        """Status-only transition; the status table is always enforced."""
        target = parse_status(status)

        with LogContext.bind(mapping_id=mapping_id):
            with transaction(self._mappings, ctx) as tx:
                existing = tx.get_by_id(mapping_id)
                if existing is None:
                    raise MappingNotFoundError(mapping_id)
                check_transition(existing.status, target)
                if target == MappingStatus.ACTIVE:
                    self._ensure_no_other_active(tx, existing)
                now = self._clock.now()
                tx.update_status(mapping_id, target, now)

            logger.info(
                "mapping_status_changed",
                extra={"from_status": existing.status.value, "to_status": target.value},
            )
        return dataclasses.replace(existing, status=target, updated_at=now)

    def delete_mapping(self, mapping_id: UUID, ctx: OperationContext | None = None) -> None:
        with transaction(self._mappings, ctx) as tx:
            if tx.get_by_id(mapping_id) is None:
                raise MappingNotFoundError(mapping_id)
            tx.delete(mapping_id)
        logger.info("mapping_deleted", extra={"mapping_id": str(mapping_id)})

    def list_mappings(
        self, params: ListMappingsParams, ctx: OperationContext | None = None
    ) -> Page[Mapping]:
        ensure_context(ctx).raise_if_cancelled()
        page, size = normalize_paging(
            params.page,
            params.page_size,
            default_size=self._default_page_size,
            max_size=self._max_page_size,
        )
        validate_list_params(params)
        items, total = self._mappings.list(params, page, size)
        return Page(tuple(items), total, page, size)

    def health_check(self, ctx: OperationContext | None = None) -> None:
        self._mappings.ping(ctx)

    @staticmethod
    def _ensure_no_other_active(tx: MappingGateway, mapping: Mapping) -> None:
        other = tx.get_active_mapping(mapping.record_id, exclude_id=mapping.mapping_id)
        if other is not None:
            raise MappingConflictError(mapping.record_id, other.mapping_id)
