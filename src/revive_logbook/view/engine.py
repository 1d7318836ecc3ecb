"""View engine: filtering, sorting and pagination over enriched revives.

The engine holds the list state a user manipulates (filters, sort, page,
page size, exclusions) and recomputes the visible slice on demand. Sorting
is stable, so records with equal keys keep their relative order across
recomputations with the same input.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, tzinfo
from enum import Enum
from typing import TYPE_CHECKING

from ..enrichment import Category, EnrichedRecord
from ..errors import InvalidFilterState, RecordsFetchFailed
from ..schemas import ExclusionSet

if TYPE_CHECKING:
    from ..state_store import RecordStore

logger = logging.getLogger(__name__)

PAGE_SIZES = (10, 25, 50, 100)
OUTCOMES = ("success", "failure")
MAX_SUGGESTIONS = 8


class SortField(str, Enum):
    TIMESTAMP = "timestamp"
    SKILL = "skill"
    CHANCE = "chance"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


_SORT_KEYS: dict[SortField, Callable[[EnrichedRecord], float]] = {
    SortField.TIMESTAMP: lambda r: r.timestamp,
    SortField.SKILL: lambda r: r.skill,
    SortField.CHANCE: lambda r: r.chance,
}


@dataclass(frozen=True)
class FilterState:
    """Optional predicates, combined with AND. None means "any"."""

    category: Category | None = None
    outcome: str | None = None
    target_name: str = ""
    faction_name: str = ""
    date_from: date | None = None
    date_to: date | None = None

    def validate(self) -> None:
        if self.outcome is not None and self.outcome not in OUTCOMES:
            raise InvalidFilterState(f"Unknown outcome filter: {self.outcome!r}")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise InvalidFilterState(
                f"date_from {self.date_from} is after date_to {self.date_to}"
            )


@dataclass(frozen=True)
class SortState:
    field: SortField = SortField.TIMESTAMP
    direction: SortDirection = SortDirection.DESC


@dataclass
class ViewPage:
    """One page of the filtered, sorted view."""

    records: list[EnrichedRecord]
    filtered_count: int
    total_pages: int
    current_page: int
    page_size: int


@dataclass
class ViewSummary:
    """Aggregate counts over the cached and filtered sets."""

    total: int
    filtered: int
    successful: int
    failed: int
    by_category: dict[str, int] = field(default_factory=dict)
    paid: int = 0
    unpaid: int = 0


def total_pages_for(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


class ViewEngine:
    """Filtered, sorted, paginated view over one mode's enriched revives.

    Exclusions are read from and written to the record store, so they are
    shared across modes and survive restarts.
    """

    def __init__(
        self,
        store: RecordStore,
        records: list[EnrichedRecord] | None = None,
        page_size: int = PAGE_SIZES[0],
        tz: tzinfo | None = None,
        on_backfill: Callable[[], object] | None = None,
        can_backfill: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the view.

        Args:
            store: Record store holding exclusions and payments.
            records: Enriched records to show.
            page_size: Initial page size, one of PAGE_SIZES.
            tz: Timezone for date-range boundaries (None: local time).
            on_backfill: Called when the last page is requested.
            can_backfill: Returns False once the mode has no older data.
        """
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}, got {page_size}")
        self.store = store
        self.tz = tz
        self.on_backfill = on_backfill
        self.can_backfill = can_backfill
        self._records: list[EnrichedRecord] = list(records or [])
        self._exclusions: ExclusionSet = store.get_exclusions()
        self.filters = FilterState()
        self.sort = SortState()
        self.page_size = page_size
        self.current_page = 1

    # === Inputs ===

    def set_records(self, records: list[EnrichedRecord]) -> None:
        """Replace the underlying records (e.g. after a refresh or backfill).

        The current page is kept, clamped to the new page count.
        """
        self._records = list(records)
        self.current_page = self._clamp(self.current_page)

    def set_filters(self, **changes: object) -> FilterState:
        """Update one or more filter fields and go back to page 1."""
        category = changes.get("category")
        if category is not None:
            try:
                changes["category"] = Category(category)
            except ValueError as e:
                raise InvalidFilterState(f"Unknown category filter: {category!r}") from e
        updated = replace(self.filters, **changes)
        updated.validate()
        self.filters = updated
        self.current_page = 1
        return updated

    def set_date_range(self, date_from: date | None, date_to: date | None) -> FilterState:
        return self.set_filters(date_from=date_from, date_to=date_to)

    def clear_filters(self) -> None:
        self.filters = FilterState()
        self.current_page = 1

    def set_sort(self, field: SortField | str, direction: SortDirection | str) -> SortState:
        self.sort = SortState(SortField(field), SortDirection(direction))
        return self.sort

    def toggle_sort(self, field: SortField | str) -> SortState:
        """Same field flips the direction; a new field starts descending."""
        field = SortField(field)
        if self.sort.field is field:
            flipped = (
                SortDirection.ASC if self.sort.direction is SortDirection.DESC else SortDirection.DESC
            )
            self.sort = SortState(field, flipped)
        else:
            self.sort = SortState(field, SortDirection.DESC)
        return self.sort

    def set_page_size(self, page_size: int) -> None:
        if page_size not in PAGE_SIZES:
            raise ValueError(f"page_size must be one of {PAGE_SIZES}, got {page_size}")
        self.page_size = page_size
        self.current_page = 1

    def go_to_page(self, page: int) -> ViewPage:
        """Move to a page (clamped). Landing on the last page asks for older data.

        A failed fetch is logged and the page is returned from the cache.
        """
        self.current_page = self._clamp(page)
        view = self.current_view()
        if self.current_page == view.total_pages and self._should_backfill():
            logger.debug("Last page requested, asking for older revives")
            try:
                self.on_backfill()
            except RecordsFetchFailed as e:
                logger.warning("Could not load older revives: %s", e)
                return view
            view = self.current_view()
        return view

    # === Exclusions ===

    @property
    def exclusions(self) -> ExclusionSet:
        return self._exclusions

    def reload_exclusions(self) -> None:
        self._exclusions = self.store.get_exclusions()
        self.current_page = 1

    def exclude_target(self, name: str) -> None:
        self._update_exclusions(players=self._exclusions.players | {name})

    def include_target(self, name: str) -> None:
        self._update_exclusions(players=self._exclusions.players - {name})

    def exclude_faction(self, name: str) -> None:
        self._update_exclusions(factions=self._exclusions.factions | {name})

    def include_faction(self, name: str) -> None:
        self._update_exclusions(factions=self._exclusions.factions - {name})

    def _update_exclusions(self, **changes: set[str]) -> None:
        updated = replace(self._exclusions, **changes)
        self.store.save_exclusions(updated)
        self._exclusions = updated
        self.current_page = 1

    # === Outputs ===

    def all_records(self) -> list[EnrichedRecord]:
        """Every record, unfiltered and in input order."""
        return list(self._records)

    def filtered_records(self) -> list[EnrichedRecord]:
        """Every record passing the filters and exclusions, sorted."""
        matching = [r for r in self._records if self._matches(r)]
        return sorted(
            matching,
            key=_SORT_KEYS[self.sort.field],
            reverse=self.sort.direction is SortDirection.DESC,
        )

    def current_view(self) -> ViewPage:
        filtered = self.filtered_records()
        total_pages = total_pages_for(len(filtered), self.page_size)
        self.current_page = min(max(1, self.current_page), total_pages)
        start = (self.current_page - 1) * self.page_size
        return ViewPage(
            records=filtered[start : start + self.page_size],
            filtered_count=len(filtered),
            total_pages=total_pages,
            current_page=self.current_page,
            page_size=self.page_size,
        )

    def summary(self) -> ViewSummary:
        filtered = self.filtered_records()
        payments = self.store.get_all_payments()
        by_category: dict[str, int] = {}
        for record in filtered:
            by_category[record.category.value] = by_category.get(record.category.value, 0) + 1
        paid = sum(1 for r in filtered if payments.get(r.payment_key))
        successful = sum(1 for r in filtered if r.success)
        return ViewSummary(
            total=len(self._records),
            filtered=len(filtered),
            successful=successful,
            failed=len(filtered) - successful,
            by_category=by_category,
            paid=paid,
            unpaid=len(filtered) - paid,
        )

    def target_suggestions(self, prefix: str) -> list[str]:
        """Distinct target names containing the text, alphabetical."""
        needle = prefix.strip().lower()
        if not needle:
            return []
        names = {r.target_name for r in self._records if r.target_name}
        return sorted(n for n in names if needle in n.lower())[:MAX_SUGGESTIONS]

    # === Internals ===

    def _clamp(self, page: int) -> int:
        total = total_pages_for(len(self.filtered_records()), self.page_size)
        return min(max(1, page), total)

    def _should_backfill(self) -> bool:
        if self.on_backfill is None:
            return False
        return self.can_backfill is None or self.can_backfill()

    def _day_start(self, day: date) -> int:
        return int(datetime.combine(day, time.min, tzinfo=self.tz).timestamp())

    def _day_end(self, day: date) -> int:
        return int(datetime.combine(day, time(23, 59, 59), tzinfo=self.tz).timestamp())

    def _matches(self, record: EnrichedRecord) -> bool:
        f = self.filters
        faction_name = record.target_faction_name

        if self._exclusions.excludes(record.target_name, faction_name):
            return False
        if f.category is not None and record.category != f.category:
            return False
        if f.outcome is not None and record.success != (f.outcome == "success"):
            return False
        if f.target_name.strip() and f.target_name.strip().lower() not in record.target_name.lower():
            return False
        if f.faction_name.strip():
            if faction_name is None or f.faction_name.strip().lower() not in faction_name.lower():
                return False
        if f.date_from is not None and record.timestamp < self._day_start(f.date_from):
            return False
        if f.date_to is not None and record.timestamp > self._day_end(f.date_to):
            return False
        return True
