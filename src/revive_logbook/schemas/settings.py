"""
Object-valued settings persisted in the settings collection.
"""

from dataclasses import dataclass, field

DEFAULT_RECEIPT_TEMPLATE = (
    "Receipt for {target}\n"
    "Revives done: {revives_done} ({successful_revives} successful, {failed_revives} failed)\n"
    "Total due: {total_amount}"
)


@dataclass
class ExclusionSet:
    """Target and faction names hidden from every view.

    Names are compared by exact string identity.
    """

    players: set[str] = field(default_factory=set)
    factions: set[str] = field(default_factory=set)

    def excludes(self, target_name: str, faction_name: str | None) -> bool:
        if target_name in self.players:
            return True
        return faction_name is not None and faction_name in self.factions

    def to_dict(self) -> dict:
        # Sorted so the stored JSON is stable across saves
        return {"players": sorted(self.players), "factions": sorted(self.factions)}

    @classmethod
    def from_dict(cls, data: object) -> "ExclusionSet":
        if not isinstance(data, dict):
            return cls()
        return cls(
            players={str(p) for p in data.get("players") or []},
            factions={str(f) for f in data.get("factions") or []},
        )


@dataclass
class ReceiptSettings:
    """Per-revive prices used when billing a target."""

    xanax_per_revive: int = 1
    money_per_revive: int = 1_000_000
    template: str = DEFAULT_RECEIPT_TEMPLATE

    def to_dict(self) -> dict:
        return {
            "xanaxPerRevive": self.xanax_per_revive,
            "moneyPerRevive": self.money_per_revive,
            "template": self.template,
        }

    @classmethod
    def from_dict(cls, data: object) -> "ReceiptSettings":
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        return cls(
            xanax_per_revive=int(data.get("xanaxPerRevive", defaults.xanax_per_revive)),
            money_per_revive=int(data.get("moneyPerRevive", defaults.money_per_revive)),
            template=str(data.get("template", defaults.template)),
        )
