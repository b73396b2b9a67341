"""
Typed Exception Hierarchy for the ETC Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from EtcKernelError:

    EtcKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidStatusTransitionError
    |
    +-- DuplicateError
    |   +-- DuplicateFingerprintError
    |   +-- MappingConflictError
    |
    +-- NotFoundError
    |   +-- RecordNotFoundError
    |   +-- MappingNotFoundError
    |   +-- SessionNotFoundError
    |
    +-- TransactionError
    |   +-- ImportFailedError
    |
    +-- PersistenceError
    |
    +-- OperationCancelledError
    |
    +-- RetryExhaustedError
    |
    +-- AcquisitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|--------------------------------------
Validation   | VALIDATION_ERROR           | Field failed a rule (before any tx)
             | INVALID_STATUS_TRANSITION  | (from, to) not in the lifecycle table
-------------|----------------------------|--------------------------------------
Duplicate    | DUPLICATE_FINGERPRINT      | Live record with same fingerprint
             | MAPPING_CONFLICT           | Record already has an active mapping
-------------|----------------------------|--------------------------------------
Not found    | RECORD_NOT_FOUND           | Record id absent (or soft-deleted)
             | MAPPING_NOT_FOUND          | Mapping id absent
             | SESSION_NOT_FOUND          | Import session id absent
-------------|----------------------------|--------------------------------------
Transaction  | TRANSACTION_ERROR          | begin / commit / rollback failed
             | IMPORT_FAILED              | Whole import session aborted
-------------|----------------------------|--------------------------------------
Persistence  | PERSISTENCE_ERROR          | Store rejected a write inside a tx
-------------|----------------------------|--------------------------------------
Control      | OPERATION_CANCELLED        | Context cancelled or deadline passed
             | RETRY_EXHAUSTED            | Retry helper used every attempt
             | ACQUISITION_ERROR          | One account's download failed

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        mapping_service.create_mapping(params)
    except MappingConflictError as e:
        respond(409, code=e.code, record_id=e.record_id)
    except NotFoundError as e:
        respond(404, code=e.code)

Validation errors are raised before a transaction is opened. Everything
raised after ``begin_tx`` has already been rolled back by the time the
caller sees it.
"""

from typing import Any


class EtcKernelError(Exception):
    """
    Base exception for all ETC kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ETC_KERNEL_ERROR"


# Validation


class ValidationError(EtcKernelError):
    """A single field failed validation."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"validation failed for {field}: {reason}")


class InvalidStatusTransitionError(ValidationError):
    """Requested lifecycle transition is not in the allowed table."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        EtcKernelError.__init__(
            self,
            f"invalid {entity} status transition from {from_status} to {to_status}",
        )
        self.field = "status"
        self.reason = f"transition {from_status} -> {to_status} not allowed"


# Duplicates


class DuplicateError(EtcKernelError):
    """Base exception for uniqueness violations."""

    code: str = "DUPLICATE"


class DuplicateFingerprintError(DuplicateError):
    """A live record already carries this fingerprint."""

    code: str = "DUPLICATE_FINGERPRINT"

    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"record with fingerprint {fingerprint} already exists")


class MappingConflictError(DuplicateError):
    """The record already has an active mapping."""

    code: str = "MAPPING_CONFLICT"

    def __init__(self, record_id: Any, existing_mapping_id: Any):
        self.record_id = record_id
        self.existing_mapping_id = existing_mapping_id
        super().__init__(
            f"active mapping already exists for record {record_id}: "
            f"{existing_mapping_id}"
        )


# Not found


class NotFoundError(EtcKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class RecordNotFoundError(NotFoundError):
    """Toll record with given ID was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"record not found: {record_id}")


class MappingNotFoundError(NotFoundError):
    """Mapping with given ID was not found."""

    code: str = "MAPPING_NOT_FOUND"

    def __init__(self, mapping_id: Any):
        self.mapping_id = mapping_id
        super().__init__(f"mapping not found: {mapping_id}")


class SessionNotFoundError(NotFoundError):
    """Import session with given ID was not found."""

    code: str = "SESSION_NOT_FOUND"

    def __init__(self, session_id: Any):
        self.session_id = session_id
        super().__init__(f"import session not found: {session_id}")


# Transactions and persistence


class TransactionError(EtcKernelError):
    """A transaction could not be begun, committed or rolled back."""

    code: str = "TRANSACTION_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"failed to {operation} transaction: {detail}")


class ImportFailedError(TransactionError):
    """
    An import session hit a session-level fault and was marked failed.

    Row-level problems never raise this; they are accumulated on the
    session instead.
    """

    code: str = "IMPORT_FAILED"

    def __init__(self, session_id: Any, detail: str):
        self.session_id = session_id
        self.operation = "import"
        self.detail = detail
        EtcKernelError.__init__(self, f"import session {session_id} failed: {detail}")


class PersistenceError(EtcKernelError):
    """The underlying store rejected a create, update or delete."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, entity: str, detail: str):
        self.operation = operation
        self.entity = entity
        self.detail = detail
        super().__init__(f"failed to {operation} {entity}: {detail}")


# Control flow


class OperationCancelledError(EtcKernelError):
    """The operation context was cancelled or its deadline passed."""

    code: str = "OPERATION_CANCELLED"

    def __init__(self, reason: str = "context cancelled"):
        self.reason = reason
        super().__init__(reason)


class RetryExhaustedError(EtcKernelError):
    """Every retry attempt failed."""

    code: str = "RETRY_EXHAUSTED"

    def __init__(self, attempts: int, last_error: str):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"operation failed after {attempts} attempts: {last_error}")


class AcquisitionError(EtcKernelError):
    """Downloading records for one account failed."""

    code: str = "ACQUISITION_ERROR"

    def __init__(self, account_id: str, detail: str):
        self.account_id = account_id
        self.detail = detail
        super().__init__(f"acquisition failed for account {account_id}: {detail}")
