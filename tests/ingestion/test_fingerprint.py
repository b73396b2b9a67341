"""
Tests for record fingerprints.

Property tests check determinism and that every content field takes part in
the hash while the device id, external link and identity do not.
"""

import dataclasses
import re
from datetime import date

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from etc_ingestion.domain.fingerprint import FINGERPRINT_LENGTH, compute_fingerprint, fingerprint
from etc_kernel.utils.hashing import sha256_hex
from tests.builders import make_record

_text = st.text(min_size=1, max_size=20)

TEXT_FIELDS = {
    "use_time": st.from_regex(r"\A([01][0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]\Z"),
    "entrance_ic": _text,
    "exit_ic": _text,
    "car_number": _text,
    "etc_card_number": st.from_regex(r"\A[0-9]{16,19}\Z"),
}

records = st.builds(
    make_record,
    use_date=st.dates(min_value=date(2000, 1, 1), max_value=date(2030, 12, 31)),
    toll_amount=st.integers(min_value=0, max_value=999_999),
    **TEXT_FIELDS,
)


class TestFingerprint:

    def test_canonical_layout(self):
        record = make_record()
        expected = sha256_hex(
            "2024-05-20|08:15:00|東京|横浜|1320|品川 300 あ 12-34|1234567890123456"
        )
        assert record.fingerprint == expected

    def test_lowercase_hex(self):
        assert re.fullmatch(r"[0-9a-f]{64}", make_record().fingerprint)
        assert FINGERPRINT_LENGTH == 64

    def test_function_matches_property(self):
        record = make_record()
        assert fingerprint(record) == record.fingerprint

    def test_replace_recomputes(self):
        record = make_record()
        changed = dataclasses.replace(record, toll_amount=1500)
        assert changed.fingerprint != record.fingerprint
        assert changed.fingerprint == make_record(toll_amount=1500).fingerprint

    @settings(max_examples=50)
    @given(records)
    def test_deterministic(self, record):
        again = compute_fingerprint(
            record.use_date,
            record.use_time,
            record.entrance_ic,
            record.exit_ic,
            record.toll_amount,
            record.car_number,
            record.etc_card_number,
        )
        assert again == record.fingerprint

    @settings(max_examples=50)
    @given(records, st.text(min_size=5, max_size=10), st.integers(min_value=1))
    def test_ignores_non_content_fields(self, record, etc_num, dtako_row_id):
        other = dataclasses.replace(record, etc_num=etc_num, dtako_row_id=dtako_row_id)
        assert other.fingerprint == record.fingerprint
        assert other.record_id == record.record_id

    @settings(max_examples=50)
    @given(records, st.integers(min_value=1, max_value=1000))
    def test_amount_changes_fingerprint(self, record, delta):
        other = dataclasses.replace(record, toll_amount=record.toll_amount + delta)
        assert other.fingerprint != record.fingerprint

    @settings(max_examples=50)
    @given(records)
    def test_date_changes_fingerprint(self, record):
        other = dataclasses.replace(record, use_date=date(1999, 12, 31))
        assert other.fingerprint != record.fingerprint

    @pytest.mark.parametrize("field_name", sorted(TEXT_FIELDS))
    @settings(max_examples=50)
    @given(data=st.data())
    def test_text_field_changes_fingerprint(self, field_name, data):
        record = data.draw(records)
        value = data.draw(TEXT_FIELDS[field_name])
        assume(value != getattr(record, field_name))
        other = dataclasses.replace(record, **{field_name: value})
        assert other.fingerprint != record.fingerprint
