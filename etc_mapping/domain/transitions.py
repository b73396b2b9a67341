"""
Mapping status lifecycle.

The lifecycle is a lookup table of allowed ``(from, to)`` pairs.  Anything
not listed fails, including a "transition" to the current status.

    pending  -> active, rejected
    active   -> inactive
    inactive -> active
    rejected -> pending
"""

from __future__ import annotations

from enum import Enum

from etc_kernel.exceptions import InvalidStatusTransitionError, ValidationError


class MappingStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: frozenset[tuple[MappingStatus, MappingStatus]] = frozenset(
    {
        (MappingStatus.PENDING, MappingStatus.ACTIVE),
        (MappingStatus.PENDING, MappingStatus.REJECTED),
        (MappingStatus.ACTIVE, MappingStatus.INACTIVE),
        (MappingStatus.INACTIVE, MappingStatus.ACTIVE),
        (MappingStatus.REJECTED, MappingStatus.PENDING),
    }
)


def parse_status(value: MappingStatus | str) -> MappingStatus:
    try:
        return MappingStatus(value)
    except ValueError:
        raise ValidationError(
            "status", f"must be one of {[s.value for s in MappingStatus]}"
        ) from None


def can_transition(from_status: MappingStatus, to_status: MappingStatus) -> bool:
    return (from_status, to_status) in ALLOWED_TRANSITIONS


def check_transition(from_status: MappingStatus, to_status: MappingStatus) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidStatusTransitionError("mapping", from_status.value, to_status.value)


def allowed_targets(from_status: MappingStatus) -> frozenset[MappingStatus]:
    return frozenset(to for frm, to in ALLOWED_TRANSITIONS if frm == from_status)
