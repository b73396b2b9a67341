"""
Acquisition domain types -- pure, no I/O.

AcquisitionJob is a frozen snapshot; the tracker swaps in a new snapshot
under its lock on every change, so any instance a caller holds is stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from etc_kernel.exceptions import ValidationError

ACCOUNT_TYPES = ("corporate", "personal")


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


@dataclass(frozen=True)
class AcquisitionJob:
    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    progress: int = 0
    total_accounts: int = 0
    processed_accounts: int = 0
    failed_accounts: int = 0
    imported_records: int = 0
    duplicate_records: int = 0
    account_errors: tuple[str, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES


@dataclass(frozen=True)
class AccountCredentials:
    """One account entry. The password never appears in repr or logs."""

    user_id: str
    password: str = field(repr=False)
    account_type: str = "corporate"

    @classmethod
    def parse(cls, value: str, default_type: str = "corporate") -> AccountCredentials:
        """
        Parse ``user:password`` or ``user:password:account_type``.

        Raises:
            ValidationError: empty user or password, or unknown account type.
        """
        parts = value.split(":")
        if len(parts) not in (2, 3):
            raise ValidationError("account", "expected user:password[:account_type]")
        user_id, password = parts[0].strip(), parts[1]
        account_type = parts[2].strip().lower() if len(parts) == 3 else default_type
        if not user_id:
            raise ValidationError("account", "user id must not be empty")
        if not password:
            raise ValidationError("account", "password must not be empty")
        if account_type not in ACCOUNT_TYPES:
            raise ValidationError("account", f"unknown account type {account_type!r}")
        return cls(user_id=user_id, password=password, account_type=account_type)


def account_label(value: str) -> str:
    """The user part of an account entry, for logs."""
    return value.split(":", 1)[0].strip() or "<unknown>"


def compute_progress(done: int, total: int) -> int:
    """``round(done / total * 100)`` with halves rounded up, in integers."""
    if total <= 0:
        return 100
    return (200 * done + total) // (2 * total)
