"""
Mapping gateway -- protocol and SQLAlchemy implementation.

Invariants enforced:
    - ``get_active_mapping`` is the lookup the service uses to keep at most
      one active mapping per record; ``exclude_id`` lets an update skip the
      mapping being changed.
    - ``delete`` is a hard delete.
    - A write that would leave two active mappings on one record hits the
      partial unique index and surfaces as MappingConflictError.

Failure modes:
    - PersistenceError on store failure (including an unknown record_id
      rejected by the foreign key).
    - MappingNotFoundError from update / update_status / delete.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from etc_kernel.db.gateway import SqlAlchemyGateway, TransactionalGateway
from etc_kernel.exceptions import MappingConflictError, MappingNotFoundError, PersistenceError
from etc_mapping.domain.transitions import MappingStatus
from etc_mapping.domain.types import ListMappingsParams, Mapping
from etc_mapping.models.mapping import ACTIVE_INDEX_NAME, MappingModel

_SORT_COLUMNS = {
    "created_at": MappingModel.created_at,
    "confidence": MappingModel.confidence,
    "record_id": MappingModel.record_id,
}


@runtime_checkable
class MappingGateway(TransactionalGateway, Protocol):
    def create(self, mapping: Mapping) -> Mapping: ...

    def get_by_id(self, mapping_id: UUID) -> Mapping | None: ...

    def get_by_record_id(self, record_id: UUID) -> list[Mapping]: ...

    def get_active_mapping(
        self, record_id: UUID, exclude_id: UUID | None = None
    ) -> Mapping | None: ...

    def update(self, mapping: Mapping) -> Mapping: ...

    def update_status(
        self, mapping_id: UUID, status: MappingStatus, updated_at: datetime
    ) -> None: ...

    def delete(self, mapping_id: UUID) -> None: ...

    def list(
        self, params: ListMappingsParams, page: int, page_size: int
    ) -> tuple[list[Mapping], int]: ...


class SqlAlchemyMappingGateway(SqlAlchemyGateway):
    entity_name = "etc_mapping"

    def create(self, mapping: Mapping) -> Mapping:
        now = self._clock.now()
        try:
            with self._write("create") as session:
                model = MappingModel.from_dto(mapping)
                model.created_at = mapping.created_at or now
                model.updated_at = mapping.updated_at or now
                session.add(model)
        except PersistenceError as exc:
            self._raise_if_active_conflict(exc, mapping.record_id, mapping.mapping_id)
            raise
        return model.to_dto()

    def get_by_id(self, mapping_id: UUID) -> Mapping | None:
        return self._first(select(MappingModel).where(MappingModel.id == mapping_id))

    def get_by_record_id(self, record_id: UUID) -> list[Mapping]:
        stmt = (
            select(MappingModel)
            .where(MappingModel.record_id == record_id)
            .order_by(MappingModel.created_at, MappingModel.id)
        )
        try:
            with self._use_session() as session:
                return [m.to_dto() for m in session.execute(stmt).scalars()]
        except SQLAlchemyError as exc:
            raise PersistenceError("read", self.entity_name, str(exc)) from exc

    def get_active_mapping(
        self, record_id: UUID, exclude_id: UUID | None = None
    ) -> Mapping | None:
        stmt = select(MappingModel).where(
            MappingModel.record_id == record_id,
            MappingModel.status == MappingStatus.ACTIVE.value,
        )
        if exclude_id is not None:
            stmt = stmt.where(MappingModel.id != exclude_id)
        return self._first(stmt.limit(1))

    def update(self, mapping: Mapping) -> Mapping:
        try:
            with self._write("update") as session:
                model = session.get(MappingModel, mapping.mapping_id)
                if model is None:
                    raise MappingNotFoundError(mapping.mapping_id)
                model.apply(mapping)
                model.updated_at = mapping.updated_at or self._clock.now()
        except PersistenceError as exc:
            self._raise_if_active_conflict(exc, mapping.record_id, mapping.mapping_id)
            raise
        return model.to_dto()

    def update_status(
        self, mapping_id: UUID, status: MappingStatus, updated_at: datetime
    ) -> None:
        record_id = None
        try:
            with self._write("update status") as session:
                model = session.get(MappingModel, mapping_id)
                if model is None:
                    raise MappingNotFoundError(mapping_id)
                record_id = model.record_id
                model.status = status.value
                model.updated_at = updated_at
        except PersistenceError as exc:
            if record_id is not None:
                self._raise_if_active_conflict(exc, record_id, mapping_id)
            raise

    def delete(self, mapping_id: UUID) -> None:
        with self._write("delete") as session:
            model = session.get(MappingModel, mapping_id)
            if model is None:
                raise MappingNotFoundError(mapping_id)
            session.delete(model)

    def list(
        self, params: ListMappingsParams, page: int, page_size: int
    ) -> tuple[list[Mapping], int]:
        conditions = []
        if params.record_id is not None:
            conditions.append(MappingModel.record_id == params.record_id)
        if params.mapping_type:
            conditions.append(MappingModel.mapping_type == params.mapping_type.strip().lower())
        if params.mapped_entity_type:
            conditions.append(
                MappingModel.mapped_entity_type == params.mapped_entity_type.strip().lower()
            )
        if params.mapped_entity_id is not None:
            conditions.append(MappingModel.mapped_entity_id == params.mapped_entity_id)
        if params.status is not None:
            conditions.append(MappingModel.status == MappingStatus(params.status).value)
        if params.min_confidence is not None:
            conditions.append(MappingModel.confidence >= params.min_confidence)
        if params.max_confidence is not None:
            conditions.append(MappingModel.confidence <= params.max_confidence)
        if params.created_by:
            conditions.append(MappingModel.created_by == params.created_by)

        column = _SORT_COLUMNS[params.sort_by]
        order = column.asc() if params.sort_order == "asc" else column.desc()

        count_stmt = select(func.count()).select_from(MappingModel).where(*conditions)
        page_stmt = (
            select(MappingModel)
            .where(*conditions)
            .order_by(order, MappingModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            with self._use_session() as session:
                total = session.execute(count_stmt).scalar_one()
                models = session.execute(page_stmt).scalars().all()
                return [m.to_dto() for m in models], total
        except SQLAlchemyError as exc:
            raise PersistenceError("list", self.entity_name, str(exc)) from exc

    def _raise_if_active_conflict(
        self, exc: PersistenceError, record_id: UUID, mapping_id: UUID
    ) -> None:
        """Turn a hit on the one-active-mapping index into MappingConflictError."""
        cause = exc.__cause__
        if not isinstance(cause, IntegrityError):
            return
        # SQLite names the column, PostgreSQL names the index.
        message = str(cause.orig)
        if ACTIVE_INDEX_NAME not in message and "etc_mappings.record_id" not in message:
            return
        other = self.get_active_mapping(record_id, exclude_id=mapping_id)
        raise MappingConflictError(
            record_id, other.mapping_id if other is not None else None
        ) from exc

    def _first(self, stmt) -> Mapping | None:
        try:
            with self._use_session() as session:
                model = session.execute(stmt).scalars().first()
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError("read", self.entity_name, str(exc)) from exc
