"""Billing totals for revives done on one target.

Successful revives are always billable. Failed revives become billable
when the caller opts in, optionally only above a minimum success chance.
Rendering the receipt text is left to the presentation layer.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo

from ..enrichment import EnrichedRecord
from ..errors import InvalidFilterState
from ..schemas import ReceiptSettings

DATE_PRESETS = ("today", "yesterday", "7days", "30days", "all")


@dataclass
class BillingSummary:
    """What one target owes for the selected revives."""

    target_name: str
    total: int
    successful: int
    failed: int
    billable: int
    total_xanax: int
    total_money: int
    settings: ReceiptSettings
    records: list[EnrichedRecord] = field(default_factory=list)

    @property
    def amount_label(self) -> str:
        """Amount due, e.g. '10 Xanax or $10,000,000'; '0' when both prices are 0."""
        has_xanax = self.settings.xanax_per_revive > 0
        has_money = self.settings.money_per_revive > 0
        if has_xanax and has_money:
            return f"{self.total_xanax} Xanax or ${self.total_money:,}"
        if has_xanax:
            return f"{self.total_xanax} Xanax"
        if has_money:
            return f"${self.total_money:,}"
        return "0"


def preset_range(
    preset: str, now: datetime | None = None, tz: tzinfo | None = None
) -> tuple[int | None, int | None]:
    """Timestamp bounds (inclusive) for a named date preset."""
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date preset {preset!r}; expected one of {DATE_PRESETS}")
    if preset == "all":
        return None, None

    now = now or datetime.now(tz)
    today_start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo or tz)
    tomorrow_start = today_start + timedelta(days=1)
    starts = {
        "today": (today_start, tomorrow_start),
        "yesterday": (today_start - timedelta(days=1), today_start),
        "7days": (today_start - timedelta(days=7), tomorrow_start),
        "30days": (today_start - timedelta(days=30), tomorrow_start),
    }
    start, end = starts[preset]
    return int(start.timestamp()), int(end.timestamp())


def custom_range(
    date_from: date | None, date_to: date | None, tz: tzinfo | None = None
) -> tuple[int | None, int | None]:
    """Timestamp bounds from midnight of date_from to 23:59:59 of date_to."""
    if date_from and date_to and date_from > date_to:
        raise InvalidFilterState(f"date_from {date_from} is after date_to {date_to}")
    since = int(datetime.combine(date_from, time.min, tzinfo=tz).timestamp()) if date_from else None
    until = (
        int(datetime.combine(date_to, time(23, 59, 59), tzinfo=tz).timestamp()) if date_to else None
    )
    return since, until


def summarize_billing(
    records: Iterable[EnrichedRecord],
    target_name: str,
    settings: ReceiptSettings,
    include_failures: bool = False,
    min_chance: float = 0,
    since: int | None = None,
    until: int | None = None,
) -> BillingSummary:
    """
    Total up what a target owes.

    Args:
        records: Enriched revives (typically every cached revive of the mode)
        target_name: Exact target name to bill
        settings: Per-revive prices
        include_failures: Bill failed revives too
        min_chance: Ignore revives below this success chance (0 disables)
        since: Ignore revives before this timestamp
        until: Ignore revives after this timestamp

    Returns:
        BillingSummary with the selected revives, newest first
    """
    selected = []
    for record in records:
        if record.target_name != target_name:
            continue
        if not include_failures and not record.success:
            continue
        if since is not None and record.timestamp < since:
            continue
        if until is not None and record.timestamp > until:
            continue
        if min_chance > 0 and record.chance < min_chance:
            continue
        selected.append(record)

    selected.sort(key=lambda r: r.timestamp, reverse=True)
    successful = sum(1 for r in selected if r.success)
    billable = len(selected) if include_failures else successful

    return BillingSummary(
        target_name=target_name,
        total=len(selected),
        successful=successful,
        failed=len(selected) - successful,
        billable=billable,
        total_xanax=billable * settings.xanax_per_revive,
        total_money=billable * settings.money_per_revive,
        settings=settings,
        records=selected,
    )
