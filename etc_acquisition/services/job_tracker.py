"""
AcquisitionJobTracker -- in-memory asynchronous acquisition jobs.

Contract:
    ``process_async`` registers a job as ``processing``, starts one daemon
    thread for it and returns at once.  ``get_job_status`` returns the
    current frozen snapshot.

Architecture: etc_acquisition/services.  Drives ImportService.import_csv
    once per account with bytes from an injected AcquisitionClient.

Invariants enforced:
    - Accounts within one job run sequentially, with a pacing delay after
      each one.
    - progress == round((index + 1) / total * 100) after each account;
      100 on completion.
    - Per-account failures are logged and counted; the job continues.
    - Any other exception in the job thread marks the job failed and stops it.
    - The job map is only touched under ``_lock``; readers always see a
      whole snapshot.
    - All timestamps come from the injected Clock.

Failure modes:
    - ValidationError from ``process_async`` for a bad date range or a job id
      that is still processing.
"""

from __future__ import annotations

import dataclasses
import threading
from datetime import date, timedelta
from typing import Sequence

from etc_acquisition.clients.base import AcquisitionClientFactory
from etc_acquisition.domain.types import (
    AccountCredentials,
    AcquisitionJob,
    JobStatus,
    account_label,
    compute_progress,
)
from etc_ingestion.domain.types import ImportCSVParams
from etc_ingestion.services.import_service import ImportService
from etc_kernel.domain.clock import Clock
from etc_kernel.domain.context import OperationContext
from etc_kernel.exceptions import (
    AcquisitionError,
    EtcKernelError,
    OperationCancelledError,
    ValidationError,
)
from etc_kernel.logging_config import LogContext, get_logger
from etc_kernel.utils.retry import with_retry

logger = get_logger("acquisition.job_tracker")


@dataclasses.dataclass(frozen=True)
class _AccountOutcome:
    imported: int
    duplicates: int


class AcquisitionJobTracker:
    """Runs and tracks multi-account acquisition jobs.

    Non-goals:
        - NOT a general job queue; no priorities, no persistence.
        - Does not run accounts of one job in parallel.
    """

    def __init__(
        self,
        import_service: ImportService,
        client_factory: AcquisitionClientFactory,
        clock: Clock,
        *,
        pacing_delay_seconds: float = 1.0,
        retry_attempts: int = 3,
        retry_base_delay_seconds: float = 0.5,
        job_retention_seconds: int = 86400,
        default_account_type: str = "corporate",
    ):
        self._import_service = import_service
        self._client_factory = client_factory
        self._clock = clock
        self._pacing_delay = pacing_delay_seconds
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay_seconds
        self._retention = timedelta(seconds=job_retention_seconds)
        self._default_account_type = default_account_type

        self._lock = threading.Lock()
        self._jobs: dict[str, AcquisitionJob] = {}
        self._threads: dict[str, threading.Thread] = {}
        self._contexts: dict[str, OperationContext] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process_async(
        self,
        job_id: str,
        accounts: Sequence[str],
        from_date: date,
        to_date: date,
    ) -> AcquisitionJob:
        if not job_id:
            raise ValidationError("job_id", "must not be empty")
        if from_date > to_date:
            raise ValidationError("from_date", "must not be after to_date")

        self.sweep_expired()
        accounts = list(accounts)
        job = AcquisitionJob(
            job_id=job_id,
            total_accounts=len(accounts),
            started_at=self._clock.now(),
        )
        ctx = OperationContext()

        with self._lock:
            current = self._jobs.get(job_id)
            if current is not None and not current.is_terminal:
                raise ValidationError("job_id", f"job {job_id} is still processing")
            self._jobs[job_id] = job
            self._contexts[job_id] = ctx
            thread = threading.Thread(
                target=self._run_job,
                args=(job_id, accounts, from_date, to_date, ctx),
                name=f"acquisition-{job_id}",
                daemon=True,
            )
            self._threads[job_id] = thread

        logger.info(
            "acquisition_job_started",
            extra={
                "job_id": job_id,
                "total_accounts": len(accounts),
                "from_date": from_date,
                "to_date": to_date,
            },
        )
        thread.start()
        return job

    def get_job_status(self, job_id: str) -> tuple[AcquisitionJob | None, bool]:
        with self._lock:
            job = self._jobs.get(job_id)
        return job, job is not None

    def list_jobs(self) -> list[AcquisitionJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        return sorted(jobs, key=lambda j: (j.started_at is None, j.started_at, j.job_id))

    def wait(self, job_id: str, timeout: float | None = None) -> AcquisitionJob | None:
        """Block until the job's thread ends (or ``timeout``); return its snapshot."""
        with self._lock:
            thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
        return self.get_job_status(job_id)[0]

    def sweep_expired(self) -> int:
        """Drop terminal jobs that finished more than the retention period ago."""
        cutoff = self._clock.now() - self._retention
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.is_terminal and job.completed_at is not None and job.completed_at <= cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
                self._threads.pop(job_id, None)
                self._contexts.pop(job_id, None)
        if expired:
            logger.info("acquisition_jobs_swept", extra={"count": len(expired)})
        return len(expired)

    def shutdown(self, timeout: float = 30.0) -> None:
        """Cancel running jobs and wait for their threads."""
        with self._lock:
            contexts = list(self._contexts.values())
            threads = list(self._threads.values())
        for ctx in contexts:
            ctx.cancel("tracker shutting down")
        for thread in threads:
            if thread.is_alive():
                thread.join(timeout)
        logger.info("acquisition_tracker_stopped")

    # ------------------------------------------------------------------
    # Job thread
    # ------------------------------------------------------------------

    def _update(self, job_id: str, **changes) -> None:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is not None:
                self._jobs[job_id] = dataclasses.replace(current, **changes)

    def _snapshot(self, job_id: str) -> AcquisitionJob:
        with self._lock:
            return self._jobs[job_id]

    def _run_job(
        self,
        job_id: str,
        accounts: list[str],
        from_date: date,
        to_date: date,
        ctx: OperationContext,
    ) -> None:
        with LogContext.bind(job_id=job_id):
            try:
                total = len(accounts)
                for index, entry in enumerate(accounts):
                    ctx.raise_if_cancelled()
                    label = account_label(entry)
                    with LogContext.bind(account_id=label):
                        self._run_account(job_id, entry, label, from_date, to_date, ctx)
                    self._update(job_id, progress=compute_progress(index + 1, total))
                    if self._pacing_delay > 0 and not ctx.sleep(self._pacing_delay):
                        raise OperationCancelledError(ctx.reason or "context cancelled")

                self._update(
                    job_id,
                    status=JobStatus.COMPLETED,
                    progress=100,
                    completed_at=self._clock.now(),
                )
                job = self._snapshot(job_id)
                logger.info(
                    "acquisition_job_completed",
                    extra={
                        "processed_accounts": job.processed_accounts,
                        "failed_accounts": job.failed_accounts,
                        "imported_records": job.imported_records,
                    },
                )
            except Exception as exc:
                logger.exception("acquisition_job_failed")
                self._update(
                    job_id,
                    status=JobStatus.FAILED,
                    error_message=f"internal error: {exc}",
                    completed_at=self._clock.now(),
                )

    def _run_account(
        self,
        job_id: str,
        entry: str,
        label: str,
        from_date: date,
        to_date: date,
        ctx: OperationContext,
    ) -> None:
        try:
            outcome = self._acquire(job_id, entry, label, from_date, to_date, ctx)
        except OperationCancelledError:
            raise
        except EtcKernelError as exc:
            logger.warning(
                "acquisition_account_failed",
                extra={"account": label, "error": str(exc), "error_code": exc.code},
            )
            with self._lock:
                job = self._jobs[job_id]
                self._jobs[job_id] = dataclasses.replace(
                    job,
                    processed_accounts=job.processed_accounts + 1,
                    failed_accounts=job.failed_accounts + 1,
                    account_errors=job.account_errors + (f"{label}: {exc}",),
                )
            return

        with self._lock:
            job = self._jobs[job_id]
            self._jobs[job_id] = dataclasses.replace(
                job,
                processed_accounts=job.processed_accounts + 1,
                imported_records=job.imported_records + outcome.imported,
                duplicate_records=job.duplicate_records + outcome.duplicates,
            )
        logger.info(
            "acquisition_account_completed",
            extra={"account": label, "imported": outcome.imported},
        )

    def _acquire(
        self,
        job_id: str,
        entry: str,
        label: str,
        from_date: date,
        to_date: date,
        ctx: OperationContext,
    ) -> _AccountOutcome:
        try:
            credentials = AccountCredentials.parse(entry, self._default_account_type)
        except ValidationError as exc:
            raise AcquisitionError(label, exc.reason) from exc

        try:
            client = self._client_factory(credentials)
        except Exception as exc:
            raise AcquisitionError(label, f"client construction failed: {exc}") from exc

        try:
            data = with_retry(
                lambda: client.download(from_date, to_date, ctx),
                max_retries=self._retry_attempts,
                base_delay=self._retry_base_delay,
                ctx=ctx,
                retry_on=(AcquisitionError, ConnectionError, TimeoutError),
                operation_name="download",
            )
        finally:
            client.close()

        params = ImportCSVParams(
            account_type=credentials.account_type,
            account_id=credentials.user_id,
            file_name=f"{credentials.user_id}_{from_date:%Y%m%d}_{to_date:%Y%m%d}.csv",
            file_size=len(data),
            created_by=f"acquisition:{job_id}",
        )
        result = self._import_service.import_csv(params, data, ctx)
        return _AccountOutcome(
            imported=result.session.success_rows,
            duplicates=result.session.duplicate_rows,
        )
