"""
SqlAlchemyRecordGateway -- toll-record persistence.

Responsibility:
    CRUD for ``etc_records`` plus the fingerprint duplicate check used by the
    import pipeline and the record service.

Invariants enforced:
    - Soft-deleted rows are invisible to every lookup except
      ``get_by_id(include_deleted=True)``.
    - ``create`` runs inside a SAVEPOINT; a rejected insert (for example the
      live-fingerprint unique index) leaves the enclosing transaction usable.

Failure modes:
    - PersistenceError on any store failure.
    - RecordNotFoundError from ``update`` / ``delete`` on a missing id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from etc_ingestion.domain.types import ListRecordsParams, TollRecord
from etc_ingestion.models.records import TollRecordModel
from etc_kernel.db.gateway import SqlAlchemyGateway
from etc_kernel.exceptions import PersistenceError, RecordNotFoundError

_SORT_COLUMNS = {
    "use_date": TollRecordModel.use_date,
    "toll_amount": TollRecordModel.toll_amount,
    "created_at": TollRecordModel.created_at,
}


class SqlAlchemyRecordGateway(SqlAlchemyGateway):
    entity_name = "etc_record"

    def create(self, record: TollRecord) -> TollRecord:
        now = self._clock.now()
        with self._write("create") as session:
            model = TollRecordModel.from_dto(record)
            model.created_at = record.created_at or now
            model.updated_at = record.updated_at or now
            session.add(model)
        return model.to_dto()

    def get_by_id(self, record_id: UUID, *, include_deleted: bool = False) -> TollRecord | None:
        stmt = select(TollRecordModel).where(TollRecordModel.id == record_id)
        if not include_deleted:
            stmt = stmt.where(TollRecordModel.deleted_at.is_(None))
        model = self._read_one(stmt)
        return model.to_dto() if model is not None else None

    def get_by_fingerprint(self, fingerprint: str) -> TollRecord | None:
        stmt = select(TollRecordModel).where(
            TollRecordModel.fingerprint == fingerprint,
            TollRecordModel.deleted_at.is_(None),
        )
        model = self._read_one(stmt)
        return model.to_dto() if model is not None else None

    def update(self, record: TollRecord) -> TollRecord:
        with self._write("update") as session:
            model = session.get(TollRecordModel, record.record_id)
            if model is None or model.deleted_at is not None:
                raise RecordNotFoundError(record.record_id)
            model.apply(record)
            model.updated_at = record.updated_at or self._clock.now()
        return model.to_dto()

    def delete(self, record_id: UUID, deleted_at: datetime) -> None:
        with self._write("delete") as session:
            model = session.get(TollRecordModel, record_id)
            if model is None or model.deleted_at is not None:
                raise RecordNotFoundError(record_id)
            model.deleted_at = deleted_at
            model.updated_at = deleted_at

    def check_duplicate_fingerprint(
        self, fingerprint: str, exclude_ids: Iterable[UUID] = ()
    ) -> bool:
        stmt = select(func.count()).select_from(TollRecordModel).where(
            TollRecordModel.fingerprint == fingerprint,
            TollRecordModel.deleted_at.is_(None),
        )
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(TollRecordModel.id.not_in(excluded))
        try:
            with self._use_session() as session:
                return session.execute(stmt).scalar_one() > 0
        except SQLAlchemyError as exc:
            raise PersistenceError("check duplicate", self.entity_name, str(exc)) from exc

    def list(
        self, params: ListRecordsParams, page: int, page_size: int
    ) -> tuple[list[TollRecord], int]:
        conditions = [TollRecordModel.deleted_at.is_(None)]
        if params.date_from is not None:
            conditions.append(TollRecordModel.use_date >= params.date_from)
        if params.date_to is not None:
            conditions.append(TollRecordModel.use_date <= params.date_to)
        for name in ("car_number", "etc_card_number", "entrance_ic", "exit_ic", "etc_num"):
            value = getattr(params, name)
            if value:
                conditions.append(getattr(TollRecordModel, name) == value)

        column = _SORT_COLUMNS[params.sort_by]
        order = column.asc() if params.sort_order == "asc" else column.desc()

        count_stmt = select(func.count()).select_from(TollRecordModel).where(*conditions)
        page_stmt = (
            select(TollRecordModel)
            .where(*conditions)
            .order_by(order, TollRecordModel.id)
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

    def _read_one(self, stmt) -> TollRecordModel | None:
        try:
            with self._use_session() as session:
                return session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("read", self.entity_name, str(exc)) from exc
