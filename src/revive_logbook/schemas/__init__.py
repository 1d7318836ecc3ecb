"""
Typed shapes for revive payloads and persisted settings.
"""

from .interaction import Faction, InteractionRecord, Mode, Reviver, Target
from .settings import ExclusionSet, ReceiptSettings

__all__ = [
    "ExclusionSet",
    "Faction",
    "InteractionRecord",
    "Mode",
    "ReceiptSettings",
    "Reviver",
    "Target",
]
