"""
Gateway protocols for records and import sessions.

Contract:
    Both extend TransactionalGateway.  Lookups return None when the entity is
    absent; writes against a missing entity raise the matching NotFoundError;
    store failures surface as PersistenceError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, runtime_checkable
from uuid import UUID

from etc_ingestion.domain.types import (
    ImportSession,
    ListRecordsParams,
    ListSessionsParams,
    TollRecord,
)
from etc_kernel.db.gateway import TransactionalGateway


@runtime_checkable
class RecordGateway(TransactionalGateway, Protocol):
    def create(self, record: TollRecord) -> TollRecord: ...

    def get_by_id(self, record_id: UUID, *, include_deleted: bool = False) -> TollRecord | None: ...

    def get_by_fingerprint(self, fingerprint: str) -> TollRecord | None: ...

    def update(self, record: TollRecord) -> TollRecord: ...

    def delete(self, record_id: UUID, deleted_at: datetime) -> None: ...

    def check_duplicate_fingerprint(
        self, fingerprint: str, exclude_ids: Iterable[UUID] = ()
    ) -> bool: ...

    def list(
        self, params: ListRecordsParams, page: int, page_size: int
    ) -> tuple[list[TollRecord], int]: ...


@runtime_checkable
class ImportSessionGateway(TransactionalGateway, Protocol):
    def create(self, session: ImportSession) -> ImportSession: ...

    def get_by_id(self, session_id: UUID) -> ImportSession | None: ...

    def update(self, session: ImportSession) -> ImportSession: ...

    def list(
        self, params: ListSessionsParams, page: int, page_size: int
    ) -> tuple[list[ImportSession], int]: ...
