"""Pagination DTO and parameter normalisation shared by list operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from etc_kernel.exceptions import ValidationError

T = TypeVar("T")

SORT_ORDERS = frozenset({"asc", "desc"})


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the unpaged total."""

    items: tuple[T, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def normalize_paging(
    page: int,
    page_size: int | None,
    *,
    default_size: int = 50,
    max_size: int = 1000,
) -> tuple[int, int]:
    """
    Resolve ``(page, page_size)``.

    ``page_size`` of None or 0 falls back to ``default_size``.  Values out of
    range raise ValidationError rather than being clamped.
    """
    if page < 1:
        raise ValidationError("page", "must be at least 1")
    size = page_size or default_size
    if size < 1 or size > max_size:
        raise ValidationError("page_size", f"must be between 1 and {max_size}")
    return page, size


def check_sort(sort_by: str, sort_order: str, allowed: frozenset[str]) -> None:
    if sort_by not in allowed:
        raise ValidationError("sort_by", f"must be one of {sorted(allowed)}")
    if sort_order not in SORT_ORDERS:
        raise ValidationError("sort_order", "must be asc or desc")
