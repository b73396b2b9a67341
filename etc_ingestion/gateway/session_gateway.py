"""SqlAlchemyImportSessionGateway -- persistence for import sessions."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from etc_ingestion.domain.types import ImportSession, ListSessionsParams
from etc_ingestion.models.records import ImportSessionModel
from etc_kernel.db.gateway import SqlAlchemyGateway
from etc_kernel.exceptions import PersistenceError, SessionNotFoundError

_SORT_COLUMNS = {
    "created_at": ImportSessionModel.created_at,
    "started_at": ImportSessionModel.started_at,
    "file_name": ImportSessionModel.file_name,
}


class SqlAlchemyImportSessionGateway(SqlAlchemyGateway):
    entity_name = "import_session"

    def create(self, session: ImportSession) -> ImportSession:
        now = self._clock.now()
        with self._write("create") as db:
            model = ImportSessionModel.from_dto(session)
            model.created_at = session.created_at or now
            model.updated_at = now
            db.add(model)
        return model.to_dto()

    def get_by_id(self, session_id: UUID) -> ImportSession | None:
        try:
            with self._use_session() as db:
                model = db.get(ImportSessionModel, session_id)
                return model.to_dto() if model is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError("read", self.entity_name, str(exc)) from exc

    def update(self, session: ImportSession) -> ImportSession:
        with self._write("update") as db:
            model = db.get(ImportSessionModel, session.session_id)
            if model is None:
                raise SessionNotFoundError(session.session_id)
            model.apply(session)
            model.updated_at = self._clock.now()
        return model.to_dto()

    def list(
        self, params: ListSessionsParams, page: int, page_size: int
    ) -> tuple[list[ImportSession], int]:
        conditions = []
        if params.account_type:
            conditions.append(ImportSessionModel.account_type == params.account_type)
        if params.account_id:
            conditions.append(ImportSessionModel.account_id.contains(params.account_id))
        if params.status is not None:
            conditions.append(ImportSessionModel.status == params.status.value)
        if params.created_by:
            conditions.append(ImportSessionModel.created_by == params.created_by)

        column = _SORT_COLUMNS[params.sort_by]
        order = column.asc() if params.sort_order == "asc" else column.desc()

        count_stmt = select(func.count()).select_from(ImportSessionModel).where(*conditions)
        page_stmt = (
            select(ImportSessionModel)
            .where(*conditions)
            .order_by(order, ImportSessionModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            with self._use_session() as db:
                total = db.execute(count_stmt).scalar_one()
                models = db.execute(page_stmt).scalars().all()
                return [m.to_dto() for m in models], total
        except SQLAlchemyError as exc:
            raise PersistenceError("list", self.entity_name, str(exc)) from exc
