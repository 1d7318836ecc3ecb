"""Derivation of category, likelihood and skill gain for cached revives.

Enrichment runs over the complete raw set on every load. Derived fields are
never persisted, so changing a rule in ``rules.py`` takes effect on the
next load without touching the cache.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from ..errors import MalformedRecord
from ..schemas import InteractionRecord
from .rules import Category, LikelihoodBand, classify_reason

logger = logging.getLogger(__name__)

# Skill is capped at 100; once reached there is nothing left to gain
MAX_SKILL = 100.0


@dataclass(frozen=True)
class EnrichedRecord:
    """A raw revive plus its derived, read-only fields."""

    record: InteractionRecord
    success: bool
    category: Category
    likelihood: LikelihoodBand
    skill_gain: float | None = None

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def timestamp(self) -> int:
        return self.record.timestamp

    @property
    def chance(self) -> float:
        return self.record.success_chance

    @property
    def skill(self) -> float:
        return self.record.reviver.skill or 0.0

    @property
    def target_name(self) -> str:
        return self.record.target.name

    @property
    def target_faction_name(self) -> str | None:
        faction = self.record.target.faction
        return faction.name if faction else None

    @property
    def hospital_reason(self) -> str:
        return self.record.target.hospital_reason

    @property
    def payment_key(self) -> str:
        return f"{self.record.timestamp}_{self.record.target.id}"


def likelihood_band(chance: float) -> LikelihoodBand:
    """Bucket a success chance; each band includes its upper bound."""
    if chance <= 30:
        return LikelihoodBand.LOW
    if chance <= 60:
        return LikelihoodBand.MEDIUM
    if chance <= 80:
        return LikelihoodBand.HIGH
    return LikelihoodBand.VERY_HIGH


def _round2(value: float) -> float:
    # Halves round towards +inf, as the dashboard always displayed them
    return math.floor(value * 100 + 0.5) / 100


def _coerce(raw: InteractionRecord | dict[str, Any]) -> InteractionRecord | None:
    if isinstance(raw, InteractionRecord):
        return raw
    try:
        return InteractionRecord.from_api_response(raw)
    except MalformedRecord as e:
        logger.warning("Skipping malformed revive during enrichment: %s", e)
        return None


def detect_reference_actor(raw_records: Iterable[InteractionRecord | dict[str, Any]]) -> int:
    """Reviver id of the first readable record, or 0 when there is none."""
    for raw in raw_records:
        record = _coerce(raw)
        if record is not None:
            return record.reviver.id
    return 0


def enrich(
    raw_records: Iterable[InteractionRecord | dict[str, Any]],
    reference_actor_id: int,
) -> list[EnrichedRecord]:
    """
    Derive category, likelihood band and skill gain for every revive.

    Skill gain is only defined for the reference actor's successful revives
    of other players. In timestamp order, each such revive gets the
    difference between its skill and the next one's (0 once the next one
    is at the cap); the latest one has no later reference point and keeps
    None.

    Args:
        raw_records: Raw payloads or parsed records (input is not modified)
        reference_actor_id: Player whose revives drive the skill gain

    Returns:
        Enriched records in input order
    """
    enriched: list[EnrichedRecord] = []
    for raw in raw_records:
        record = _coerce(raw)
        if record is None:
            continue
        enriched.append(
            EnrichedRecord(
                record=record,
                success=record.success,
                category=classify_reason(record.target.hospital_reason),
                likelihood=likelihood_band(record.success_chance),
            )
        )

    chain = sorted(
        (
            index
            for index, item in enumerate(enriched)
            if item.record.reviver.id == reference_actor_id
            and item.record.target.id != reference_actor_id
            and item.success
        ),
        key=lambda index: enriched[index].timestamp,
    )

    for current_index, next_index in zip(chain, chain[1:]):
        current_skill = enriched[current_index].skill
        next_skill = enriched[next_index].skill
        gain = 0.0 if next_skill >= MAX_SKILL else _round2(current_skill - next_skill)
        enriched[current_index] = replace(enriched[current_index], skill_gain=gain)

    return enriched
