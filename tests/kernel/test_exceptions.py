"""Tests for the typed exception hierarchy."""

from uuid import uuid4

import pytest

from etc_kernel.exceptions import (
    AcquisitionError,
    DuplicateError,
    DuplicateFingerprintError,
    EtcKernelError,
    ImportFailedError,
    InvalidStatusTransitionError,
    MappingConflictError,
    MappingNotFoundError,
    NotFoundError,
    OperationCancelledError,
    PersistenceError,
    RecordNotFoundError,
    RetryExhaustedError,
    SessionNotFoundError,
    TransactionError,
    ValidationError,
)


class TestHierarchy:

    @pytest.mark.parametrize(
        "exc, parent",
        [
            (InvalidStatusTransitionError("mapping", "pending", "inactive"), ValidationError),
            (DuplicateFingerprintError("ab" * 32), DuplicateError),
            (MappingConflictError(uuid4(), uuid4()), DuplicateError),
            (RecordNotFoundError(uuid4()), NotFoundError),
            (MappingNotFoundError(uuid4()), NotFoundError),
            (SessionNotFoundError(uuid4()), NotFoundError),
            (ImportFailedError(uuid4(), "commit failed"), TransactionError),
        ],
    )
    def test_subclass(self, exc, parent):
        assert isinstance(exc, parent)
        assert isinstance(exc, EtcKernelError)

    def test_codes_are_distinct(self):
        classes = [
            ValidationError,
            InvalidStatusTransitionError,
            DuplicateError,
            DuplicateFingerprintError,
            MappingConflictError,
            NotFoundError,
            RecordNotFoundError,
            MappingNotFoundError,
            SessionNotFoundError,
            TransactionError,
            ImportFailedError,
            PersistenceError,
            OperationCancelledError,
            RetryExhaustedError,
            AcquisitionError,
        ]
        codes = [cls.code for cls in classes]
        assert len(set(codes)) == len(codes)


class TestFields:

    def test_validation_error(self):
        exc = ValidationError("toll_amount", "must be between 0 and 999999")
        assert exc.field == "toll_amount"
        assert "toll_amount" in str(exc)

    def test_transition_error_reports_status_field(self):
        exc = InvalidStatusTransitionError("mapping", "active", "pending")
        assert exc.field == "status"
        assert exc.from_status == "active"
        assert exc.to_status == "pending"

    def test_import_failed_carries_session(self):
        session_id = uuid4()
        exc = ImportFailedError(session_id, "commit failed")
        assert exc.session_id == session_id
        assert exc.detail == "commit failed"

    def test_acquisition_error(self):
        exc = AcquisitionError("user1", "portal timeout")
        assert exc.account_id == "user1"
        assert "portal timeout" in str(exc)
