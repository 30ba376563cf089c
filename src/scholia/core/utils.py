"""Utility functions for scholia."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Sequence, TypeVar

T = TypeVar("T")

LOCAL_STAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def local_now_stamp() -> str:
    """Current local time as ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.now().strftime(LOCAL_STAMP_FORMAT)


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    current_page: int
    total_pages: int


def paginate(items: Sequence[T], page: int = 1, page_size: int = 20) -> Page[T]:
    """
    Slice one page out of an ordered sequence.

    Pages are 1-based. A page past the end is empty but still reports the
    real total.

    Examples:
        >>> paginate(list(range(45)), page=3, page_size=20).items
        [40, 41, 42, 43, 44]
        >>> paginate([], page=1).total_pages
        0
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")

    start = (page - 1) * page_size
    end = start + page_size
    total = len(items)

    return Page(
        items=list(items[start:end]),
        total=total,
        current_page=page,
        total_pages=math.ceil(total / page_size),
    )
