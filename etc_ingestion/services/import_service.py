"""
Import service: parse -> validate -> deduplicate -> persist.

Responsibility:
    Drives an ImportSession through ``pending -> processing -> terminal``
    while streaming CSV rows into the record store inside one transaction.

Architecture position:
    Ingestion > Services.  Depends on the record and session gateways, the
    CSV adapter and the domain validators.  Called directly by API callers
    and by the acquisition job tracker (once per account).

Invariants enforced:
    - Row-level problems (parse, missing fields, validation, create) are
      accumulated on the session and never abort the run.
    - Duplicate check and create happen inside the same transaction.
    - A terminal session satisfies success + error + duplicate == processed
      and processed <= total.
    - Session-level faults (begin, duplicate-check failure, commit) roll the
      transaction back, mark the session failed and raise ImportFailedError.

Failure modes:
    - ValidationError: bad session parameters or bulk options (no tx opened).
    - SessionNotFoundError / InvalidStatusTransitionError on session lookups.
    - ImportFailedError: whole session aborted.
    - OperationCancelledError: context cancelled mid-run; session cancelled.
"""

from __future__ import annotations

from typing import Iterable, Sequence
from uuid import UUID

from etc_ingestion.adapters.csv_adapter import CsvRecordAdapter, ParsedRow, RowProblem
from etc_ingestion.domain.types import (
    BatchOutcome,
    BulkProcessOptions,
    BulkProcessResult,
    ImportCSVParams,
    ImportResult,
    ImportSession,
    ImportSessionStatus,
    ListSessionsParams,
    RowErrorKind,
    SESSION_SORT_FIELDS,
    TollRecord,
)
from etc_ingestion.domain.validators import (
    collect_violations,
    validate_bulk_options,
    validate_import_params,
    validate_record,
)
from etc_ingestion.gateway.base import ImportSessionGateway, RecordGateway
from etc_kernel.db.gateway import transaction
from etc_kernel.domain.clock import Clock
from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.domain.paging import Page, check_sort, normalize_paging
from etc_kernel.exceptions import (
    EtcKernelError,
    ImportFailedError,
    OperationCancelledError,
    PersistenceError,
    SessionNotFoundError,
    TransactionError,
    ValidationError,
)
from etc_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.import_service")


class ImportService:
    """
    CSV import pipeline and import-session bookkeeping.

    Contract:
        ``import_csv`` returns an ImportResult whose session is ``completed``
        even when rows were rejected; the row-error list carries the detail.

    Non-goals:
        - No parallelism inside a session.
        - Does not resume a failed or cancelled session.
    """

    def __init__(
        self,
        records: RecordGateway,
        sessions: ImportSessionGateway,
        clock: Clock,
        *,
        adapter: CsvRecordAdapter | None = None,
        default_page_size: int = 50,
        max_page_size: int = 1000,
        default_batch_size: int = 1000,
    ):
        self._records = records
        self._sessions = sessions
        self._clock = clock
        self._adapter = adapter or CsvRecordAdapter()
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._default_batch_size = default_batch_size

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self, params: ImportCSVParams, ctx: OperationContext | None = None
    ) -> ImportSession:
        validate_import_params(params)
        ensure_context(ctx).raise_if_cancelled()

        session = ImportSession(
            account_type=params.account_type,
            account_id=params.account_id.strip(),
            file_name=params.file_name.strip(),
            file_size=params.file_size,
            created_by=params.created_by,
            created_at=self._clock.now(),
        )
        created = self._sessions.create(session)
        logger.info(
            "import_session_created",
            extra={
                "session_id": str(created.session_id),
                "account_type": created.account_type,
                "account_id": created.account_id,
                "file_name": created.file_name,
                "file_size": created.file_size,
            },
        )
        return created

    def get_session(
        self, session_id: UUID, ctx: OperationContext | None = None
    ) -> ImportSession:
        ensure_context(ctx).raise_if_cancelled()
        session = self._sessions.get_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(
        self, params: ListSessionsParams, ctx: OperationContext | None = None
    ) -> Page[ImportSession]:
        ensure_context(ctx).raise_if_cancelled()
        page, size = normalize_paging(
            params.page,
            params.page_size,
            default_size=self._default_page_size,
            max_size=self._max_page_size,
        )
        check_sort(params.sort_by, params.sort_order, SESSION_SORT_FIELDS)
        items, total = self._sessions.list(params, page, size)
        return Page(tuple(items), total, page, size)

    def cancel_session(
        self, session_id: UUID, ctx: OperationContext | None = None
    ) -> ImportSession:
        """Move a pending or processing session to cancelled."""
        with transaction(self._sessions, ctx) as tx:
            session = tx.get_by_id(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session.cancel(self._clock.now())
            tx.update(session)

        logger.info(
            "import_session_cancelled",
            extra={"session_id": str(session_id)},
        )
        return session.snapshot()

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_csv(
        self,
        params: ImportCSVParams,
        data: bytes | str,
        ctx: OperationContext | None = None,
    ) -> ImportResult:
        session = self.create_session(params, ctx)
        return self.run_session(session.session_id, data, ctx)

    def import_csv_stream(
        self,
        session_id: UUID,
        chunks: Iterable[bytes | str],
        ctx: OperationContext | None = None,
    ) -> ImportResult:
        """Join ``chunks`` and run the pending session over the result."""
        ctx = ensure_context(ctx)
        parts: list[bytes] = []
        for chunk in chunks:
            ctx.raise_if_cancelled()
            parts.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
        data = b"".join(parts)
        return self.run_session(session_id, data, ctx, file_size=len(data))

    def run_session(
        self,
        session_id: UUID,
        data: bytes | str,
        ctx: OperationContext | None = None,
        *,
        file_size: int | None = None,
    ) -> ImportResult:
        ctx = ensure_context(ctx)
        session = self.get_session(session_id, ctx)
        if file_size is not None:
            session.file_size = file_size

        with LogContext.bind(session_id=session.session_id, account_id=session.account_id):
            session.start(self._clock.now())
            self._sessions.update(session)
            logger.info("import_session_started", extra={"file_name": session.file_name})

            created_ids: list[UUID] = []
            try:
                with transaction(self._records, ctx) as tx:
                    for parsed, item in self._adapter.read(data):
                        ctx.raise_if_cancelled()
                        session.total_rows += 1
                        self._process_row(tx, session, parsed, item, created_ids)
                    ctx.raise_if_cancelled()
                    self._raise_if_cancelled_elsewhere(session.session_id)
            except OperationCancelledError as exc:
                self._cancel_running(session, str(exc))
                raise
            except (TransactionError, PersistenceError) as exc:
                self._fail_running(session, str(exc))
                raise ImportFailedError(session.session_id, str(exc)) from exc
            except Exception as exc:
                self._fail_running(session, f"internal error: {exc}")
                raise

            session.complete(self._clock.now())
            self._sessions.update(session)

            logger.info(
                "import_session_completed",
                extra={
                    "total_rows": session.total_rows,
                    "success_rows": session.success_rows,
                    "error_rows": session.error_rows,
                    "duplicate_rows": session.duplicate_rows,
                },
            )
            return ImportResult(session.snapshot(), tuple(created_ids))

    def _process_row(
        self,
        tx: RecordGateway,
        session: ImportSession,
        parsed: ParsedRow | None,
        item: TollRecord | RowProblem,
        created_ids: list[UUID],
    ) -> None:
        if isinstance(item, RowProblem):
            session.record_error(item.row_number, item.kind, item.message, item.raw_data)
            return

        assert parsed is not None
        violations = collect_violations(item, self._clock.today())
        if violations:
            session.record_error(
                parsed.row_number,
                RowErrorKind.VALIDATION_ERROR,
                "; ".join(str(v) for v in violations),
                parsed.raw_data,
            )
            return

        # Duplicate-check failures are session-level and propagate.
        if tx.check_duplicate_fingerprint(item.fingerprint):
            session.record_duplicate()
            return

        try:
            created = tx.create(item)
        except PersistenceError as exc:
            session.record_error(
                parsed.row_number,
                RowErrorKind.CREATION_ERROR,
                str(exc),
                parsed.raw_data,
            )
            return
        created_ids.append(created.record_id)
        session.record_success()

    def _raise_if_cancelled_elsewhere(self, session_id: UUID) -> None:
        stored = self._sessions.get_by_id(session_id)
        if stored is not None and stored.status == ImportSessionStatus.CANCELLED:
            raise OperationCancelledError("import session cancelled")

    def _cancel_running(self, session: ImportSession, reason: str) -> None:
        session.discard_results()
        session.error_message = reason
        session.cancel(self._clock.now())
        self._persist_terminal(session)
        logger.warning("import_session_cancelled", extra={"reason": reason})

    def _fail_running(self, session: ImportSession, message: str) -> None:
        session.fail(message, self._clock.now())
        self._persist_terminal(session)
        logger.error("import_session_failed", extra={"error": message})

    def _persist_terminal(self, session: ImportSession) -> None:
        try:
            self._sessions.update(session)
        except EtcKernelError:
            logger.error(
                "import_session_state_not_persisted",
                extra={"status": session.status.value},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Bulk processing
    # ------------------------------------------------------------------

    def process_rows(
        self,
        records: Sequence[TollRecord],
        options: BulkProcessOptions | None = None,
        ctx: OperationContext | None = None,
    ) -> BulkProcessResult:
        """
        Persist ``records`` in sequential batches, one transaction each.

        Without ``continue_on_error`` the first failing record rolls back its
        batch and is raised; earlier batches stay committed.
        """
        options = options or BulkProcessOptions(batch_size=self._default_batch_size)
        validate_bulk_options(options)
        ctx = ensure_context(ctx)
        today = self._clock.today()

        succeeded = duplicates = failed = 0
        errors: list[str] = []
        batches: list[BatchOutcome] = []

        for batch_number, start in enumerate(
            range(0, len(records), options.batch_size), start=1
        ):
            ctx.raise_if_cancelled()
            batch = records[start : start + options.batch_size]
            b_ok = b_dup = b_fail = 0
            with transaction(self._records, ctx) as tx:
                for offset, record in enumerate(batch):
                    index = start + offset
                    try:
                        validate_record(record, today)
                        if tx.check_duplicate_fingerprint(record.fingerprint):
                            b_dup += 1
                            continue
                        tx.create(record)
                        b_ok += 1
                    except (ValidationError, PersistenceError) as exc:
                        if not options.continue_on_error:
                            logger.warning(
                                "bulk_batch_aborted",
                                extra={"batch_number": batch_number, "index": index},
                            )
                            raise
                        b_fail += 1
                        errors.append(f"record {index}: {exc}")

            succeeded += b_ok
            duplicates += b_dup
            failed += b_fail
            batches.append(BatchOutcome(batch_number, len(batch), b_ok, b_dup, b_fail))
            logger.debug(
                "bulk_batch_committed",
                extra={"batch_number": batch_number, "succeeded": b_ok, "failed": b_fail},
            )

        return BulkProcessResult(
            total=len(records),
            succeeded=succeeded,
            duplicates=duplicates,
            failed=failed,
            errors=tuple(errors),
            batches=tuple(batches),
        )

    def process_csv(
        self,
        data: bytes | str,
        options: BulkProcessOptions | None = None,
        ctx: OperationContext | None = None,
    ) -> BulkProcessResult:
        """Parse ``data`` and hand the records to ``process_rows``."""
        options = options or BulkProcessOptions(batch_size=self._default_batch_size)
        validate_bulk_options(options)
        records: list[TollRecord] = []
        problems: list[str] = []
        for _, item in self._adapter.read(data):
            if isinstance(item, RowProblem):
                if not options.continue_on_error:
                    raise ValidationError(f"row {item.row_number}", item.message)
                problems.append(f"row {item.row_number}: {item.message}")
            else:
                records.append(item)

        result = self.process_rows(records, options, ctx)
        return BulkProcessResult(
            total=result.total + len(problems),
            succeeded=result.succeeded,
            duplicates=result.duplicates,
            failed=result.failed + len(problems),
            errors=tuple(problems) + result.errors,
            batches=result.batches,
        )

    def health_check(self, ctx: OperationContext | None = None) -> None:
        self._records.ping(ctx)
        self._sessions.ping(ctx)
