"""
etc_ingestion.domain.types -- dataclasses for records and import sessions.

ZERO I/O. Imports only from etc_kernel and etc_ingestion.domain.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from etc_ingestion.domain.fingerprint import compute_fingerprint
from etc_kernel.exceptions import InvalidStatusTransitionError, ValidationError


# =============================================================================
# Toll record
# =============================================================================


@dataclass(frozen=True)
class TollRecord:
    """
    Immutable snapshot of one toll transaction.

    ``fingerprint`` is derived in ``__post_init__`` and cannot be passed in;
    ``dataclasses.replace`` recomputes it from the new field values.
    """

    use_date: date
    use_time: str  # HH:MM:SS
    entrance_ic: str
    exit_ic: str
    toll_amount: int
    car_number: str
    etc_card_number: str
    etc_num: str | None = None  # device id
    dtako_row_id: int | None = None
    record_id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    fingerprint: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "fingerprint",
            compute_fingerprint(
                self.use_date,
                self.use_time,
                self.entrance_ic,
                self.exit_ic,
                self.toll_amount,
                self.car_number,
                self.etc_card_number,
            ),
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class UpdateRecordParams:
    """Partial update: only non-None fields are applied."""

    use_date: date | None = None
    use_time: str | None = None
    entrance_ic: str | None = None
    exit_ic: str | None = None
    toll_amount: int | None = None
    car_number: str | None = None
    etc_card_number: str | None = None
    etc_num: str | None = None
    dtako_row_id: int | None = None

    def changes(self) -> dict[str, object]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }


RECORD_SORT_FIELDS = frozenset({"use_date", "toll_amount", "created_at"})


@dataclass(frozen=True)
class ListRecordsParams:
    """Filters and paging for record listing. Soft-deleted records are never listed."""

    page: int = 1
    page_size: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    car_number: str | None = None
    etc_card_number: str | None = None
    entrance_ic: str | None = None
    exit_ic: str | None = None
    etc_num: str | None = None
    sort_by: str = "use_date"
    sort_order: str = "desc"


# =============================================================================
# Import session
# =============================================================================


class AccountType(str, Enum):
    CORPORATE = "corporate"
    PERSONAL = "personal"


class ImportSessionStatus(str, Enum):
    """Session lifecycle status (wire-stable values)."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


SESSION_TRANSITIONS: frozenset[tuple[ImportSessionStatus, ImportSessionStatus]] = frozenset(
    {
        (ImportSessionStatus.PENDING, ImportSessionStatus.PROCESSING),
        (ImportSessionStatus.PENDING, ImportSessionStatus.CANCELLED),
        (ImportSessionStatus.PROCESSING, ImportSessionStatus.COMPLETED),
        (ImportSessionStatus.PROCESSING, ImportSessionStatus.FAILED),
        (ImportSessionStatus.PROCESSING, ImportSessionStatus.CANCELLED),
    }
)

TERMINAL_SESSION_STATUSES = frozenset(
    {
        ImportSessionStatus.COMPLETED,
        ImportSessionStatus.FAILED,
        ImportSessionStatus.CANCELLED,
    }
)


class RowErrorKind(str, Enum):
    PARSE_ERROR = "parse_error"
    INSUFFICIENT_FIELDS = "insufficient_fields"
    VALIDATION_ERROR = "validation_error"
    CREATION_ERROR = "creation_error"


@dataclass(frozen=True)
class ImportRowError:
    """One rejected input row. ``row_number`` counts the header as row 1."""

    row_number: int
    error_kind: RowErrorKind
    message: str
    raw_data: str = ""


@dataclass
class ImportSession:
    """
    Bookkeeping for one CSV import attempt.

    Mutable aggregate: the pipeline advances it in place and persists it
    through the session gateway.  Callers outside the pipeline receive
    copies via ``snapshot()``.
    """

    account_type: str
    account_id: str
    file_name: str
    file_size: int
    session_id: UUID = field(default_factory=uuid4)
    status: ImportSessionStatus = ImportSessionStatus.PENDING
    total_rows: int = 0
    processed_rows: int = 0
    success_rows: int = 0
    error_rows: int = 0
    duplicate_rows: int = 0
    row_errors: list[ImportRowError] = field(default_factory=list)
    error_message: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SESSION_STATUSES

    def can_transition(self, to_status: ImportSessionStatus) -> bool:
        return (self.status, to_status) in SESSION_TRANSITIONS

    def _transition(self, to_status: ImportSessionStatus) -> None:
        if not self.can_transition(to_status):
            raise InvalidStatusTransitionError(
                "import_session", self.status.value, to_status.value
            )
        self.status = to_status

    def start(self, at: datetime) -> None:
        self._transition(ImportSessionStatus.PROCESSING)
        self.started_at = at

    def complete(self, at: datetime) -> None:
        self.check_counters()
        self._transition(ImportSessionStatus.COMPLETED)
        self.completed_at = at

    def discard_results(self) -> None:
        """
        Forget rows that reached the store in a rolled-back transaction.

        Success and duplicate counts are cleared; row errors found before
        the rollback are kept.
        """
        self.success_rows = 0
        self.duplicate_rows = 0
        self.processed_rows = self.error_rows

    def fail(self, message: str, at: datetime) -> None:
        """Mark the session failed after a session-level fault."""
        self.discard_results()
        self.error_message = message
        self.check_counters()
        self._transition(ImportSessionStatus.FAILED)
        self.completed_at = at

    def cancel(self, at: datetime) -> None:
        self._transition(ImportSessionStatus.CANCELLED)
        self.completed_at = at

    # -- counters ------------------------------------------------------------

    def record_success(self) -> None:
        self.success_rows += 1
        self.processed_rows += 1

    def record_duplicate(self) -> None:
        self.duplicate_rows += 1
        self.processed_rows += 1

    def record_error(
        self,
        row_number: int,
        kind: RowErrorKind,
        message: str,
        raw_data: str = "",
    ) -> None:
        self.error_rows += 1
        self.processed_rows += 1
        self.row_errors.append(ImportRowError(row_number, kind, message, raw_data))

    def check_counters(self) -> None:
        if self.success_rows + self.error_rows + self.duplicate_rows != self.processed_rows:
            raise ValidationError(
                "processed_rows",
                f"{self.processed_rows} != success {self.success_rows} "
                f"+ error {self.error_rows} + duplicate {self.duplicate_rows}",
            )
        if self.processed_rows > self.total_rows:
            raise ValidationError(
                "processed_rows",
                f"{self.processed_rows} exceeds total {self.total_rows}",
            )

    @property
    def progress_percent(self) -> float:
        if self.total_rows == 0:
            return 100.0 if self.is_terminal else 0.0
        return self.processed_rows / self.total_rows * 100

    @property
    def success_rate(self) -> float:
        if self.processed_rows == 0:
            return 0.0
        return self.success_rows / self.processed_rows * 100

    def snapshot(self) -> ImportSession:
        return dataclasses.replace(self, row_errors=list(self.row_errors))


@dataclass(frozen=True)
class ImportCSVParams:
    """Source identity for one import. ``file_size`` is the raw byte length."""

    account_type: str
    account_id: str
    file_name: str
    file_size: int
    created_by: str | None = None


@dataclass(frozen=True)
class ImportResult:
    session: ImportSession
    created_record_ids: tuple[UUID, ...] = ()

    @property
    def status(self) -> ImportSessionStatus:
        return self.session.status


SESSION_SORT_FIELDS = frozenset({"created_at", "started_at", "file_name"})


@dataclass(frozen=True)
class ListSessionsParams:
    page: int = 1
    page_size: int | None = None
    account_type: str | None = None
    account_id: str | None = None  # substring match
    status: ImportSessionStatus | None = None
    created_by: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


# =============================================================================
# Bulk processing
# =============================================================================


@dataclass(frozen=True)
class BulkProcessOptions:
    batch_size: int = 1000
    continue_on_error: bool = False


@dataclass(frozen=True)
class BatchOutcome:
    batch_number: int  # 1-based
    size: int
    succeeded: int
    duplicates: int
    failed: int


@dataclass(frozen=True)
class BulkProcessResult:
    total: int
    succeeded: int
    duplicates: int
    failed: int
    errors: tuple[str, ...] = ()
    batches: tuple[BatchOutcome, ...] = ()

    @property
    def processed(self) -> int:
        return self.succeeded + self.duplicates + self.failed
