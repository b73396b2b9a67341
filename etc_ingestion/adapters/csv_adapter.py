"""
CSV adapter for toll-record extracts.

Decodes raw bytes (UTF-8 with BOM stripping, falling back to CP932 as the
toll portals export Shift_JIS), skips the header record and streams one
``ParsedRow`` per data record (quoted fields may span lines).  Field conversion into ``TollRecord`` lives
here too so the import service only sees typed values or a row error.

Architecture: etc_ingestion/adapters. No DB imports.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator

from etc_ingestion.domain.types import RowErrorKind, TollRecord

REQUIRED_FIELDS = 7
COLUMNS = (
    "date",
    "time",
    "entrance_ic",
    "exit_ic",
    "toll_amount",
    "car_number",
    "etc_card_number",
    "etc_num",
)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d")
_ENCODINGS = ("utf-8-sig", "cp932")


@dataclass(frozen=True)
class ParsedRow:
    """One data record. ``row_number`` is the physical line it starts on."""

    row_number: int
    fields: tuple[str, ...]

    @property
    def raw_data(self) -> str:
        return ",".join(self.fields)


@dataclass(frozen=True)
class RowProblem:
    """A data record that could not be read or converted."""

    row_number: int
    kind: RowErrorKind
    message: str
    raw_data: str = ""


def decode_csv_bytes(data: bytes) -> str:
    """Decode with the first encoding that succeeds."""
    for encoding in _ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def iter_rows(text: str) -> Iterator[ParsedRow | RowProblem]:
    """
    Yield each data record after the header.

    One csv reader runs over the whole text, so a quoted field may contain
    line breaks.  Blank lines are skipped.  A record the csv module rejects
    becomes a ``parse_error`` problem and reading resumes on the next line.
    """
    lines = io.StringIO(text, newline="").readlines()
    reader = csv.reader(lines, strict=True)
    header_seen = False
    while True:
        start = reader.line_num + 1
        try:
            fields = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            if header_seen:
                raw = "".join(lines[start - 1 : reader.line_num]).rstrip("\r\n")
                yield RowProblem(start, RowErrorKind.PARSE_ERROR, f"malformed CSV: {exc}", raw)
            header_seen = True
            continue
        if not header_seen:
            header_seen = True
            continue
        if not fields or (len(fields) == 1 and not fields[0].strip()):
            continue
        yield ParsedRow(start, tuple(fields))



def parse_date(value: str) -> date:
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date {value!r}")


def to_record(row: ParsedRow) -> TollRecord | RowProblem:
    """Convert a parsed row, or describe why it cannot be converted."""
    if len(row.fields) < REQUIRED_FIELDS:
        return RowProblem(
            row.row_number,
            RowErrorKind.INSUFFICIENT_FIELDS,
            f"expected at least {REQUIRED_FIELDS} fields, got {len(row.fields)}",
            row.raw_data,
        )

    f = [v.strip() for v in row.fields]
    try:
        use_date = parse_date(f[0])
    except ValueError as exc:
        return RowProblem(row.row_number, RowErrorKind.PARSE_ERROR, str(exc), row.raw_data)
    try:
        toll_amount = int(f[4])
    except ValueError:
        return RowProblem(
            row.row_number,
            RowErrorKind.PARSE_ERROR,
            f"invalid toll_amount {f[4]!r}",
            row.raw_data,
        )

    etc_num = f[7] if len(f) > 7 and f[7] else None
    return TollRecord(
        use_date=use_date,
        use_time=f[1],
        entrance_ic=f[2],
        exit_ic=f[3],
        toll_amount=toll_amount,
        car_number=f[5],
        etc_card_number=f[6],
        etc_num=etc_num,
    )


class CsvRecordAdapter:
    """Read CSV bytes as typed records or row problems. Streams rows."""

    def read(self, data: bytes | str) -> Iterator[tuple[ParsedRow | None, TollRecord | RowProblem]]:
        text = data if isinstance(data, str) else decode_csv_bytes(data)
        for item in iter_rows(text):
            if isinstance(item, RowProblem):
                yield None, item
            else:
                yield item, to_record(item)
