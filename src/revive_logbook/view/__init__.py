"""Filtered, sorted and paginated views over enriched revives."""

from .engine import (
    PAGE_SIZES,
    FilterState,
    SortDirection,
    SortField,
    SortState,
    ViewEngine,
    ViewPage,
    ViewSummary,
    total_pages_for,
)

__all__ = [
    "PAGE_SIZES",
    "FilterState",
    "SortDirection",
    "SortField",
    "SortState",
    "ViewEngine",
    "ViewPage",
    "ViewSummary",
    "total_pages_for",
]
