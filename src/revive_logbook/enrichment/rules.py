"""
Hospital-reason classification rules.

Rules are evaluated top to bottom and the first match wins, so the order
of CATEGORY_RULES is the precedence: RR, SelfHosp, Casino, PvP, OD, then
Crime as the fallback.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Why the target was in hospital."""

    PVP = "PvP"
    OD = "OD"
    CRIME = "Crime"
    RR = "RR"
    SELF_HOSP = "SelfHosp"
    CASINO = "Casino"


class LikelihoodBand(str, Enum):
    """Coarse bucket of the revive success chance."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"


@dataclass(frozen=True)
class CategoryRule:
    """A named predicate over the hospital reason."""

    name: str
    category: Category
    predicate: Callable[[str], bool]

    def matches(self, reason: str) -> bool:
        return self.predicate(reason)


# Torn wording that names the attacker; the name that follows is player-chosen
PVP_PREFIXES = ("Lost to", "Mugged by", "Hospitalized by", "Attacked by")

_ATTACKER_NAME = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in PVP_PREFIXES) + r")\s+[\w\-\[\]]+"
)


def _contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda reason: any(needle in reason for needle in needles)


def _pattern(regex: str) -> Callable[[str], bool]:
    """Case-insensitive search that ignores attacker names in the reason."""
    compiled = re.compile(regex, re.IGNORECASE)
    return lambda reason: compiled.search(_ATTACKER_NAME.sub(" ", reason)) is not None


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("russian_roulette", Category.RR, _pattern(r"russian\s+roulette")),
    CategoryRule(
        "self_hospitalized",
        Category.SELF_HOSP,
        _pattern(r"\b(himself|herself|themselves|themself)\b|self[- ]hospitali[sz]ed"),
    ),
    CategoryRule(
        "casino",
        Category.CASINO,
        _pattern(r"\b(casino|slots|roulette|blackjack|poker|high[- ]low|craps)\b"),
    ),
    CategoryRule("player_attack", Category.PVP, _contains_any(*PVP_PREFIXES)),
    CategoryRule("overdose", Category.OD, _contains_any("Overdosed on", "Collapsed after")),
)


def classify_reason(reason: str | None, rules: tuple[CategoryRule, ...] = CATEGORY_RULES) -> Category:
    """Return the category of the first rule matching the reason (Crime if none)."""
    text = reason or ""
    for rule in rules:
        if rule.matches(text):
            return rule.category
    return Category.CRIME
