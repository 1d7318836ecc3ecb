"""Test fixtures and utilities."""

from pathlib import Path

import pytest

from revive_logbook.state_store import RecordStore

ME = 1712955
OTHER_REVIVER = 2000001


def build_revive(
    revive_id: int,
    timestamp: int,
    *,
    reviver_id: int = ME,
    reviver_name: str = "Oxi",
    skill: float | None = 50.0,
    target_id: int = 3000000,
    target_name: str = "Patient",
    target_faction: str | None = "Medics",
    reason: str = "Lost to Somebody",
    result: str = "success",
    chance: float = 75.0,
) -> dict:
    """A revive payload in the Torn v2 shape."""
    return {
        "id": revive_id,
        "reviver": {
            "id": reviver_id,
            "name": reviver_name,
            "faction": {"id": 100, "name": "Revivers Inc"},
            "skill": skill,
        },
        "target": {
            "id": target_id,
            "name": target_name,
            "faction": {"id": 200, "name": target_faction} if target_faction else None,
            "hospital_reason": reason,
        },
        "result": result,
        "success_chance": chance,
        "timestamp": timestamp,
    }


@pytest.fixture
def make_revive():
    """Factory for Torn revive payloads."""
    return build_revive


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_revives.db"


@pytest.fixture
def store(temp_db):
    """Initialized record store, closed after the test."""
    record_store = RecordStore(temp_db).init()
    yield record_store
    record_store.close()


@pytest.fixture
def sample_page(make_revive) -> list[dict]:
    """Newest-first page of five revives with varied reasons."""
    return [
        make_revive(105, 1_700_000_500, target_id=3005, target_name="Eve", reason="Overdosed on Xanax"),
        make_revive(104, 1_700_000_400, target_id=3004, target_name="Dan", reason="Mugged by Mallory", result="failure", chance=20.0),
        make_revive(103, 1_700_000_300, target_id=3003, target_name="Cat", reason="Shot while playing Russian Roulette"),
        make_revive(102, 1_700_000_200, target_id=3002, target_name="Bob", reason="Lost a fortune at the casino"),
        make_revive(101, 1_700_000_100, target_id=3001, target_name="Ann", reason="Caught shoplifting", target_faction=None),
    ]
