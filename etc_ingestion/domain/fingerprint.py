"""
Record fingerprint.

The fingerprint is the duplicate-detection key for toll records: SHA-256
over the seven content fields joined with ``|``, in this order:

    date (YYYY-MM-DD) | time | entrance_ic | exit_ic | toll_amount | car_number | etc_card_number

The device id, external-row link, record id and timestamps are not part of
it.  Changing the layout invalidates every stored fingerprint.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from etc_kernel.utils.hashing import sha256_hex

FINGERPRINT_LENGTH = 64


class _Fingerprintable(Protocol):
    use_date: date
    use_time: str
    entrance_ic: str
    exit_ic: str
    toll_amount: int
    car_number: str
    etc_card_number: str


def compute_fingerprint(
    use_date: date,
    use_time: str,
    entrance_ic: str,
    exit_ic: str,
    toll_amount: int,
    car_number: str,
    etc_card_number: str,
) -> str:
    canonical = "|".join(
        (
            use_date.isoformat(),
            use_time,
            entrance_ic,
            exit_ic,
            str(int(toll_amount)),
            car_number,
            etc_card_number,
        )
    )
    return sha256_hex(canonical)


def fingerprint(record: _Fingerprintable) -> str:
    """Fingerprint of any object exposing the seven content fields."""
    return compute_fingerprint(
        record.use_date,
        record.use_time,
        record.entrance_ic,
        record.exit_ic,
        record.toll_amount,
        record.car_number,
        record.etc_card_number,
    )
