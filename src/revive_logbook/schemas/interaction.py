"""
Raw revive record as returned by the Torn v2 ``revives`` endpoints.

Only ``id``, ``timestamp``, ``reviver.id`` and ``target.id`` are required.
Every other field degrades to a safe default so that enrichment and views
never have to special-case missing data.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import MalformedRecord


class Mode(str, Enum):
    """Which revive log a record belongs to."""

    INDIVIDUAL = "individual"  # the player's own outgoing revives
    GROUP = "group"  # the faction's outgoing revives

    @classmethod
    def parse(cls, value: "str | Mode") -> "Mode":
        """Accept enum members, values, and the Torn endpoint names."""
        if isinstance(value, Mode):
            return value
        aliases = {"user": cls.INDIVIDUAL, "faction": cls.GROUP}
        lowered = str(value).strip().lower()
        if lowered in aliases:
            return aliases[lowered]
        return cls(lowered)


@dataclass(frozen=True)
class Faction:
    id: int
    name: str

    @classmethod
    def from_api(cls, data: Any) -> "Faction | None":
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        try:
            faction_id = int(data["id"])
        except (TypeError, ValueError):
            return None
        return cls(id=faction_id, name=str(data.get("name") or ""))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Reviver:
    """The player performing the revive."""

    id: int
    name: str
    faction: Faction | None = None
    skill: float | None = None


@dataclass(frozen=True)
class Target:
    """The player being revived."""

    id: int
    name: str
    faction: Faction | None = None
    hospital_reason: str = ""


def _require_int(data: Any, key: str, where: str) -> int:
    if not isinstance(data, dict) or key not in data or data[key] is None:
        raise MalformedRecord(f"{where} is missing '{key}'", payload=data)
    value = data[key]
    if isinstance(value, bool):
        raise MalformedRecord(f"{where}.{key} is not numeric: {value!r}", payload=data)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedRecord(f"{where}.{key} is not numeric: {value!r}", payload=data) from e


def _optional_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class InteractionRecord:
    """One logged revive between a reviver and a target."""

    id: int
    reviver: Reviver
    target: Target
    result: str
    success_chance: float
    timestamp: int
    mode: Mode | None = None

    @property
    def success(self) -> bool:
        return self.result == "success"

    @classmethod
    def from_api_response(cls, data: Any, mode: Mode | None = None) -> "InteractionRecord":
        """Create from a Torn API (or cached) revive payload.

        Raises:
            MalformedRecord: if an identifying field is missing or not numeric
        """
        if not isinstance(data, dict):
            raise MalformedRecord(f"revive payload is not an object: {type(data).__name__}", data)

        record_id = _require_int(data, "id", "revive")
        timestamp = _require_int(data, "timestamp", "revive")

        reviver_data = data.get("reviver")
        target_data = data.get("target")
        reviver = Reviver(
            id=_require_int(reviver_data, "id", "reviver"),
            name=str(reviver_data.get("name") or ""),
            faction=Faction.from_api(reviver_data.get("faction")),
            skill=_optional_float(reviver_data.get("skill")),
        )
        target = Target(
            id=_require_int(target_data, "id", "target"),
            name=str(target_data.get("name") or ""),
            faction=Faction.from_api(target_data.get("faction")),
            hospital_reason=str(target_data.get("hospital_reason") or ""),
        )

        return cls(
            id=record_id,
            reviver=reviver,
            target=target,
            result=str(data.get("result") or "failure"),
            success_chance=_optional_float(data.get("success_chance")) or 0.0,
            timestamp=timestamp,
            mode=mode,
        )

    def to_dict(self) -> dict:
        """Serialize back to the Torn API shape (mode is not part of it)."""
        return {
            "id": self.id,
            "reviver": {
                "id": self.reviver.id,
                "name": self.reviver.name,
                "faction": self.reviver.faction.to_dict() if self.reviver.faction else None,
                "skill": self.reviver.skill,
            },
            "target": {
                "id": self.target.id,
                "name": self.target.name,
                "faction": self.target.faction.to_dict() if self.target.faction else None,
                "hospital_reason": self.target.hospital_reason,
            },
            "result": self.result,
            "success_chance": self.success_chance,
            "timestamp": self.timestamp,
        }
