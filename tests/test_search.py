"""Tests for battle search."""

import json
from pathlib import Path

import pytest

from battletools_lib.logtools.battle import battle_from_dict
from battletools_lib.logtools.directory import ParallelDirectoryEngine
from battletools_lib.logtools.errors import ConfigurationError
from battletools_lib.logtools.search import BattleSearcher, battle_date, describe_match, room_name

from conftest import make_battle, write_battle

EXPECTED_LINE = (
    "(2021-09-30) <<battle-gen8randombattle-1>> annika vs. rusthater (Annika won normally)"
)


class TestDescribeMatch:
    def test_battle_date(self):
        assert battle_date(Path("logs/2021-09/gen8ou/2021-09-30/battle-gen8ou-1.log.json")) == "2021-09-30"
        assert battle_date(Path("elsewhere/battle-gen8ou-1.log.json")) == "unknown date"

    def test_room_name(self):
        assert room_name(Path("logs/battle-gen8ou-1.log.json")) == "battle-gen8ou-1"
        assert room_name(Path("logs/notes.txt")) == "notes.txt"

    def test_forfeit(self):
        battle = battle_from_dict(make_battle(winner="RustHater", endType="forfeit"))
        line = describe_match(battle, Path("2021-09-30/battle-gen8randombattle-1.log.json"))
        assert line.endswith("(RustHater won by forfeit)")

    def test_no_winner(self):
        battle = battle_from_dict(make_battle(winner=None, endType="tie"))
        line = describe_match(battle, Path("battle-gen8randombattle-1.log.json"))
        assert line == "(unknown date) <<battle-gen8randombattle-1>> annika vs. rusthater (there was no winner)"


class TestBattleSearcher:
    """Test matching and filters."""

    def test_requires_username(self):
        with pytest.raises(ConfigurationError):
            BattleSearcher("  ")
        with pytest.raises(ConfigurationError):
            BattleSearcher(None)

    @pytest.mark.parametrize("username,wins_only,forfeits_only,expected", [
        ("annika", False, False, True),
        ("☆ANNIKA", False, False, True),
        ("rusthater", False, False, True),
        ("somebody", False, False, False),
        ("annika", True, False, True),
        ("rusthater", True, False, False),
        ("annika", False, True, False),
        ("annika", True, True, False),
    ])
    def test_filters(self, username, wins_only, forfeits_only, expected):
        battle = battle_from_dict(make_battle())
        searcher = BattleSearcher(username, wins_only=wins_only, forfeits_only=forfeits_only)
        assert searcher.matches_battle(battle) == expected

    def test_forfeit_filter_matches_forfeits(self):
        battle = battle_from_dict(make_battle(endType="forfeit"))
        assert BattleSearcher("rusthater", forfeits_only=True).matches_battle(battle)


class TestSearchRun:
    """Test searching a directory of logs."""

    def test_finds_annika(self, log_dir, capsys):
        searcher = BattleSearcher("annika")
        stats = ParallelDirectoryEngine(searcher).process([log_dir])

        out = capsys.readouterr().out
        assert out.splitlines() == [EXPECTED_LINE]
        assert searcher.matches == 1
        assert stats.files_processed == 1

    def test_forfeits_only_finds_nothing(self, log_dir, capsys):
        searcher = BattleSearcher("annika", forfeits_only=True)
        ParallelDirectoryEngine(searcher).process([log_dir])

        assert capsys.readouterr().out == ""
        assert searcher.matches == 0

    def test_counts_only_matches(self, temp_dirs, capsys):
        input_dir, _ = temp_dirs
        for i in range(10):
            p2 = "RustHater" if i % 2 else "Someone"
            battle = make_battle(p2=p2, roomid=f"battle-gen8ou-{i}")
            write_battle(input_dir, f"battle-gen8ou-{i}.log.json", battle)
        (input_dir / "broken.log.json").write_text(json.dumps({"p1": "RustHater"}), encoding="utf-8")

        searcher = BattleSearcher("Rust Hater")
        stats = ParallelDirectoryEngine(searcher).process([input_dir])

        assert searcher.matches == 5
        assert len(capsys.readouterr().out.splitlines()) == 5
        assert stats.files_failed == 1
