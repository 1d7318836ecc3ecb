"""
Enrichment of raw revives into analysable records.

Pure functions only: nothing here touches the store or the network.
"""

from .engine import EnrichedRecord, detect_reference_actor, enrich, likelihood_band
from .rules import CATEGORY_RULES, Category, CategoryRule, LikelihoodBand, classify_reason

__all__ = [
    "CATEGORY_RULES",
    "Category",
    "CategoryRule",
    "EnrichedRecord",
    "LikelihoodBand",
    "classify_reason",
    "detect_reference_actor",
    "enrich",
    "likelihood_band",
]
