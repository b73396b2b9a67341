"""Tests for the mapping status table and parameter validators."""

import itertools
from uuid import uuid4

import pytest

from etc_kernel.exceptions import InvalidStatusTransitionError, ValidationError
from etc_mapping.domain.transitions import (
    ALLOWED_TRANSITIONS,
    MappingStatus,
    allowed_targets,
    can_transition,
    check_transition,
    parse_status,
)
from etc_mapping.domain.types import CreateMappingParams, ListMappingsParams, UpdateMappingParams
from etc_mapping.domain.validators import (
    MAX_METADATA_BYTES,
    check_metadata,
    validate_create_params,
    validate_list_params,
    validate_update_params,
)

EXPECTED = {
    (MappingStatus.PENDING, MappingStatus.ACTIVE),
    (MappingStatus.PENDING, MappingStatus.REJECTED),
    (MappingStatus.ACTIVE, MappingStatus.INACTIVE),
    (MappingStatus.INACTIVE, MappingStatus.ACTIVE),
    (MappingStatus.REJECTED, MappingStatus.PENDING),
}


class TestTransitionTable:

    def test_exactly_five_edges(self):
        assert ALLOWED_TRANSITIONS == EXPECTED

    @pytest.mark.parametrize(
        "from_status, to_status",
        list(itertools.product(MappingStatus, MappingStatus)),
    )
    def test_every_pair(self, from_status, to_status):
        allowed = (from_status, to_status) in EXPECTED
        assert can_transition(from_status, to_status) is allowed
        if allowed:
            check_transition(from_status, to_status)
        else:
            with pytest.raises(InvalidStatusTransitionError):
                check_transition(from_status, to_status)

    def test_self_transition_never_allowed(self):
        for status in MappingStatus:
            assert not can_transition(status, status)

    def test_allowed_targets(self):
        assert allowed_targets(MappingStatus.PENDING) == {
            MappingStatus.ACTIVE,
            MappingStatus.REJECTED,
        }
        assert allowed_targets(MappingStatus.ACTIVE) == {MappingStatus.INACTIVE}

    def test_parse_status(self):
        assert parse_status("rejected") is MappingStatus.REJECTED
        assert parse_status(MappingStatus.ACTIVE) is MappingStatus.ACTIVE
        with pytest.raises(ValidationError):
            parse_status("archived")


class TestCreateParams:

    def _params(self, **overrides) -> CreateMappingParams:
        values = {
            "record_id": uuid4(),
            "mapping_type": "Dtako",
            "mapped_entity_id": 42,
            "mapped_entity_type": " Vehicle ",
        }
        values.update(overrides)
        return CreateMappingParams(**values)

    def test_defaults_and_normalisation(self):
        values = validate_create_params(self._params())
        assert values["mapping_type"] == "dtako"
        assert values["mapped_entity_type"] == "vehicle"
        assert values["confidence"] == 1.0
        assert values["status"] is MappingStatus.ACTIVE

    @pytest.mark.parametrize("confidence", [0.0, 0.5, 1.0, 1])
    def test_confidence_bounds(self, confidence):
        assert validate_create_params(self._params(confidence=confidence))["confidence"] == float(
            confidence
        )

    @pytest.mark.parametrize("confidence", [-0.01, 1.01, True])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(ValidationError) as exc_info:
            validate_create_params(self._params(confidence=confidence))
        assert exc_info.value.field == "confidence"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"mapping_type": "  "}, "mapping_type"),
            ({"mapping_type": "x" * 51}, "mapping_type"),
            ({"mapped_entity_type": ""}, "mapped_entity_type"),
            ({"mapped_entity_id": 0}, "mapped_entity_id"),
            ({"mapped_entity_id": -3}, "mapped_entity_id"),
            ({"status": "archived"}, "status"),
            ({"created_by": "u" * 101}, "created_by"),
            ({"metadata": ["not", "an", "object"]}, "metadata"),
        ],
    )
    def test_invalid(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_create_params(self._params(**overrides))
        assert exc_info.value.field == field


class TestMetadata:

    def test_none_allowed(self):
        assert check_metadata(None) is None

    def test_at_limit(self):
        # {"k":"..."} is 8 bytes of framing
        payload = {"k": "a" * (MAX_METADATA_BYTES - 8)}
        assert check_metadata(payload) is payload

    def test_over_limit(self):
        with pytest.raises(ValidationError):
            check_metadata({"k": "a" * MAX_METADATA_BYTES})

    def test_multibyte_counted_in_bytes(self):
        with pytest.raises(ValidationError):
            check_metadata({"k": "あ" * (MAX_METADATA_BYTES // 3 + 1)})

    def test_not_serializable(self):
        with pytest.raises(ValidationError):
            check_metadata({"k": object()})


class TestUpdateAndListParams:

    def test_update_only_present_fields(self):
        changes = validate_update_params(UpdateMappingParams(confidence=0.4, mapping_type="MANUAL"))
        assert changes == {"confidence": 0.4, "mapping_type": "manual"}

    def test_update_status_parsed(self):
        changes = validate_update_params(UpdateMappingParams(status="inactive"))
        assert changes["status"] is MappingStatus.INACTIVE

    def test_list_confidence_range(self):
        with pytest.raises(ValidationError):
            validate_list_params(ListMappingsParams(min_confidence=0.9, max_confidence=0.1))
        with pytest.raises(ValidationError):
            validate_list_params(ListMappingsParams(min_confidence=1.5))

    def test_list_sort(self):
        with pytest.raises(ValidationError):
            validate_list_params(ListMappingsParams(sort_by="status"))
