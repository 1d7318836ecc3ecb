"""Interaction timeline for one target: revives plus payment log entries.

Payments for revives arrive as money or items sent by the target, which
Torn records in the player's own log. Putting those entries next to the
revives done on the same target shows what has been paid for.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..enrichment import EnrichedRecord

logger = logging.getLogger(__name__)

# Log types for money and items received from another player
PAYMENT_LOG_TYPES = frozenset({4103, 4810})


@dataclass(frozen=True)
class TimelineEvent:
    """Either a revive on the target or a payment log entry from them."""

    kind: str  # "revive" or "log"
    timestamp: int
    revive: EnrichedRecord | None = None
    log: dict[str, Any] | None = None

    @property
    def description(self) -> str:
        if self.revive is not None:
            outcome = "succeeded" if self.revive.success else "failed"
            return f"Revive {outcome} ({self.revive.chance:.2f}% chance)"

        details = self.log.get("details") or {}
        data = self.log.get("data") or {}
        parts = [str(details.get("title") or "Log entry")]
        if data.get("money"):
            parts.append(f"${int(data['money']):,}")
        items = data.get("items") or []
        if items:
            quantity = sum(int(item.get("qty") or 0) for item in items)
            parts.append(f"{quantity} item{'s' if quantity != 1 else ''}")
        if data.get("message"):
            parts.append(f'"{data["message"]}"')
        return " | ".join(parts)


def is_payment_log(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    details = entry.get("details")
    return isinstance(details, dict) and details.get("id") in PAYMENT_LOG_TYPES


def build_timeline(
    logs: Iterable[dict[str, Any]],
    records: Iterable[EnrichedRecord],
    target_id: int,
) -> list[TimelineEvent]:
    """
    Merge a target's revives with their payment log entries, newest first.

    Args:
        logs: Raw log entries already scoped to the target
        records: Enriched revives (any target; others are ignored)
        target_id: Player whose timeline to build

    Returns:
        Events sorted by timestamp descending; ties keep logs before revives
    """
    events: list[TimelineEvent] = []
    for entry in logs:
        if not is_payment_log(entry):
            continue
        timestamp = entry.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            logger.warning("Skipping log entry %s without a timestamp", entry.get("id"))
            continue
        events.append(TimelineEvent(kind="log", timestamp=timestamp, log=entry))

    for record in records:
        if record.record.target.id == target_id:
            events.append(TimelineEvent(kind="revive", timestamp=record.timestamp, revive=record))

    return sorted(events, key=lambda e: e.timestamp, reverse=True)
