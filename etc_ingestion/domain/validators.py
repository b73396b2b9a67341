"""
Validators for toll records and import-session parameters.

Record checks accumulate every violation (``collect_violations``);
``validate_record`` raises the first one.  Session and bulk-option checks
raise ValidationError immediately since their input is fully known before
any transaction opens.

Architecture: etc_ingestion/domain. ZERO I/O. ``today`` is supplied by the
caller from its injected Clock.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from etc_ingestion.domain.types import (
    AccountType,
    BulkProcessOptions,
    ImportCSVParams,
    ListRecordsParams,
    RECORD_SORT_FIELDS,
    TollRecord,
)
from etc_kernel.domain.paging import check_sort
from etc_kernel.exceptions import ValidationError

MAX_IC_NAME_LENGTH = 100
MAX_TOLL_AMOUNT = 999_999
MAX_FILE_SIZE = 100 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 255
MAX_ACCOUNT_ID_LENGTH = 50
MAX_BATCH_SIZE = 10_000

_TIME_RE = re.compile(r"([01]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]")
_CARD_RE = re.compile(r"[0-9]{16,19}")
_DEVICE_ID_RE = re.compile(r"[a-zA-Z0-9_\-]{5,50}")
_ACCOUNT_ID_RE = re.compile(r"[a-zA-Z0-9\-_@.]+")

# Recognised plate formats, most specific first.
CAR_NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    # full regional plate: 品川 300 あ 12-34
    re.compile(r"[一-龥ぁ-んァ-ヶ]{1,4}\s?[0-9]{2,3}\s?[ぁ-ん]\s?([0-9]{1,2}-[0-9]{2}|[0-9]{1,4})"),
    re.compile(r"[0-9]{3}-[0-9]{2}"),  # kei
    re.compile(r"[0-9]{3}\s[0-9]{2}"),
    re.compile(r"[あ-ん][0-9]{3}"),
    re.compile(r"[ア-ン][0-9]{3}"),
    re.compile(r"[0-9]{2}-[0-9]{2}"),  # two-wheeler
    re.compile(r"[0-9]{4}"),
    re.compile(r"[a-zA-Z0-9\-\s]{3,20}"),
)


@dataclass(frozen=True)
class FieldViolation:
    field: str
    reason: str

    def to_error(self) -> ValidationError:
        return ValidationError(self.field, self.reason)

    def __str__(self) -> str:
        return f"{self.field}: {self.reason}"


# -----------------------------------------------------------------------------
# Field rules
# -----------------------------------------------------------------------------


def normalize_card_number(card_number: str) -> str:
    return card_number.replace(" ", "").replace("-", "")


def is_valid_car_number(car_number: str) -> bool:
    value = car_number.strip()
    return any(p.fullmatch(value) for p in CAR_NUMBER_PATTERNS)


def _check_ic(field_name: str, value: str) -> FieldViolation | None:
    stripped = value.strip()
    if not stripped:
        return FieldViolation(field_name, "must not be empty")
    if len(stripped) > MAX_IC_NAME_LENGTH:
        return FieldViolation(
            field_name, f"must be at most {MAX_IC_NAME_LENGTH} characters"
        )
    return None


def collect_violations(record: TollRecord, today: date) -> list[FieldViolation]:
    """Every rule the record breaks, in field order."""
    violations: list[FieldViolation] = []

    if record.use_date > today:
        violations.append(FieldViolation("use_date", "must not be in the future"))
    if not _TIME_RE.fullmatch(record.use_time):
        violations.append(FieldViolation("use_time", "must be HH:MM:SS"))

    for name in ("entrance_ic", "exit_ic"):
        v = _check_ic(name, getattr(record, name))
        if v:
            violations.append(v)

    if isinstance(record.toll_amount, bool) or not isinstance(record.toll_amount, int):
        violations.append(FieldViolation("toll_amount", "must be an integer"))
    elif not 0 <= record.toll_amount <= MAX_TOLL_AMOUNT:
        violations.append(
            FieldViolation("toll_amount", f"must be between 0 and {MAX_TOLL_AMOUNT}")
        )

    if not record.car_number.strip():
        violations.append(FieldViolation("car_number", "must not be empty"))
    elif not is_valid_car_number(record.car_number):
        violations.append(FieldViolation("car_number", "unrecognised plate format"))

    if not _CARD_RE.fullmatch(normalize_card_number(record.etc_card_number)):
        violations.append(FieldViolation("etc_card_number", "must be 16-19 digits"))

    if record.etc_num is not None and record.etc_num.strip():
        if not _DEVICE_ID_RE.fullmatch(record.etc_num.strip()):
            violations.append(
                FieldViolation(
                    "etc_num",
                    "must be 5-50 letters, digits, hyphens or underscores",
                )
            )

    return violations


def validate_record(record: TollRecord, today: date) -> None:
    """Raise ValidationError for the first broken rule."""
    violations = collect_violations(record, today)
    if violations:
        raise violations[0].to_error()


def validate_records(
    records: Sequence[TollRecord], today: date
) -> dict[int, list[FieldViolation]]:
    """Index -> violations for every invalid record in ``records``."""
    result: dict[int, list[FieldViolation]] = {}
    for i, record in enumerate(records):
        violations = collect_violations(record, today)
        if violations:
            result[i] = violations
    return result


# -----------------------------------------------------------------------------
# Parameter rules
# -----------------------------------------------------------------------------


def validate_import_params(params: ImportCSVParams) -> None:
    if params.account_type not in {t.value for t in AccountType}:
        raise ValidationError("account_type", "must be corporate or personal")

    account_id = params.account_id.strip()
    if not account_id:
        raise ValidationError("account_id", "must not be empty")
    if len(account_id) > MAX_ACCOUNT_ID_LENGTH:
        raise ValidationError(
            "account_id", f"must be at most {MAX_ACCOUNT_ID_LENGTH} characters"
        )
    if not _ACCOUNT_ID_RE.fullmatch(account_id):
        raise ValidationError("account_id", "contains invalid characters")

    file_name = params.file_name.strip()
    if not file_name:
        raise ValidationError("file_name", "must not be empty")
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(
            "file_name", f"must be at most {MAX_FILE_NAME_LENGTH} characters"
        )
    if not file_name.lower().endswith(".csv"):
        raise ValidationError("file_name", "must have a .csv extension")

    if params.file_size <= 0:
        raise ValidationError("file_size", "must be positive")
    if params.file_size > MAX_FILE_SIZE:
        raise ValidationError("file_size", "must not exceed 100MB")


def validate_bulk_options(options: BulkProcessOptions) -> None:
    if not 1 <= options.batch_size <= MAX_BATCH_SIZE:
        raise ValidationError("batch_size", f"must be between 1 and {MAX_BATCH_SIZE}")


def validate_list_records_params(params: ListRecordsParams) -> None:
    check_sort(params.sort_by, params.sort_order, RECORD_SORT_FIELDS)
    if params.date_from and params.date_to and params.date_from > params.date_to:
        raise ValidationError("date_from", "must not be after date_to")
