"""Shared fixtures: sample battle logs and temporary directories."""

import copy
import json
import shutil
import tempfile
from pathlib import Path

import pytest


SAMPLE_BATTLE = {
    "winner": "Annika",
    "seed": [1, 1, 1, 1],
    "turns": 2,
    "p1": "Annika",
    "p2": "RustHater",
    "p1team": [
        {"name": "Rotom", "species": "Rotom-Fan", "level": 84, "item": "Heavy-Duty Boots"},
        {"name": "Milky", "species": "Miltank", "level": 84, "item": "Leftovers"},
    ],
    "p2team": [
        {"name": "Drednaw", "species": "Drednaw", "level": 84, "item": "Life Orb"},
        {"name": "Pikachu", "species": "Pikachu-Sinnoh", "level": 92, "item": "Light Ball"},
    ],
    "score": [0, 2],
    "inputLog": [">lol you thought i'd leak someone's real input log"],
    "log": [
        "|j|☆Annika",
        "|j|☆RustHater",
        "|t:|1632906000",
        "|player|p1|Annika|cynthia|1400",
        "|player|p2|RustHater|cynthia|1100",
        "|teamsize|p1|2",
        "|teamsize|p2|2",
        "|gametype|singles",
        "|gen|8",
        "|tier|[Gen 8] Random Battle",
        "|rated|",
        "|c|☆Annika|good luck RustHater",
        "|win|Annika",
        "|raw|Annika's rating: 1400 &rarr; <strong>1416</strong>",
    ],
    "p1rating": {
        "entryid": "75790599",
        "userid": "annika",
        "w": "4",
        "l": 4,
        "t": "0",
        "gxe": 46.8,
        "elo": 1400.4859871929,
        "oldelo": "1057.7590112468",
    },
    "p2rating": {
        "entryid": "75790599",
        "userid": "rusthater",
        "w": "4",
        "l": 5,
        "t": "0",
        "gxe": 41.8,
        "elo": 1130.7522733629,
        "oldelo": "1040.4859871929",
    },
    "endType": "normal",
    "timestamp": "Wed Nov 1 1970 00:00:01 GMT-0400 (Eastern Daylight Time)",
    "roomid": "battle-gen8randombattle-1",
    "format": "gen8randombattle",
    "comment": "my own rating info and teams, no violation of privacy here",
}


def make_battle(**overrides) -> dict:
    """A copy of the sample battle with some top-level fields replaced."""
    battle = copy.deepcopy(SAMPLE_BATTLE)
    battle.update(overrides)
    return battle


def write_battle(directory: Path, name: str, battle: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(battle, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def sample_battle():
    return make_battle()


@pytest.fixture
def sample_json(sample_battle):
    return json.dumps(sample_battle, ensure_ascii=False)


@pytest.fixture
def temp_dirs():
    """Create temporary input/output directories."""
    input_dir = Path(tempfile.mkdtemp())
    output_dir = Path(tempfile.mkdtemp())

    yield input_dir, output_dir

    # Cleanup
    shutil.rmtree(input_dir, ignore_errors=True)
    shutil.rmtree(output_dir, ignore_errors=True)


@pytest.fixture
def log_dir(temp_dirs, sample_battle):
    """Input directory laid out like Showdown's: <month>/<format>/<day>/<room>.log.json."""
    input_dir, _ = temp_dirs
    day = input_dir / "2021-09" / "gen8randombattle" / "2021-09-30"
    write_battle(day, "battle-gen8randombattle-1.log.json", sample_battle)
    return input_dir
