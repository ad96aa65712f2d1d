"""Pagination value objects shared by repositories and services."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, List, TypeVar


T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    """A 1-based page window. Only already-validated values reach storage."""

    start_page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.start_page - 1) * self.page_size

    @classmethod
    def clamped(cls, start_page: int, page_size: int, max_page_size: int) -> "PageRequest":
        return cls(
            start_page=max(1, start_page),
            page_size=max(min(page_size, max_page_size), 1),
        )


@dataclass
class Page(Generic[T]):
    """Items of one window plus the total count of the whole (unfiltered) query."""

    items: List[T] = field(default_factory=list)
    total_elements: int = 0

    def total_pages(self, page_size: int) -> int:
        if page_size <= 0:
            return 0
        return math.ceil(self.total_elements / page_size)
