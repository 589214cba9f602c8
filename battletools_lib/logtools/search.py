"""Search battle logs for battles played by one user."""

import re
from pathlib import Path
from typing import List, Optional

import click

from .battle import BattleRecord, EndType, parse_battle
from .directory import LogHandler
from .errors import ConfigurationError
from .ids import to_id

DATE_DIRECTORY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LOG_SUFFIX = ".log.json"


def battle_date(path: Path) -> str:
    """Date of a log, taken from its nearest YYYY-MM-DD parent directory.

    Showdown stores logs as logs/<month>/<format>/<day>/<battle>.log.json.
    """
    for parent in Path(path).parents:
        if DATE_DIRECTORY.match(parent.name):
            return parent.name
    return "unknown date"


def room_name(path: Path) -> str:
    name = Path(path).name
    if name.endswith(LOG_SUFFIX):
        return name[:-len(LOG_SUFFIX)]
    return name


def describe_match(battle: BattleRecord, path: Path) -> str:
    """One line describing a battle, e.g.

    (2021-09-30) <<gen8ou-1>> annika vs. rusthater (Annika won normally)
    """
    if battle.winner is not None:
        win_type = "by forfeit" if battle.end_type == EndType.FORFEIT else "normally"
        outcome = f"{battle.winner} won {win_type}"
    else:
        outcome = "there was no winner"
    return (
        f"({battle_date(path)}) <<{room_name(path)}>> "
        f"{battle.p1_id} vs. {battle.p2_id} ({outcome})"
    )


class BattleSearcher(LogHandler[bool]):
    """Prints every battle played by a user, as soon as it is found.

    Usage:
        searcher = BattleSearcher("Annika", wins_only=True)
        ParallelDirectoryEngine(searcher).process([Path("logs")])
    """

    def __init__(self, username: Optional[str], wins_only: bool = False, forfeits_only: bool = False):
        self.user_id = to_id(username)
        if not self.user_id:
            raise ConfigurationError("A username to search for is required")
        self.wins_only = wins_only
        self.forfeits_only = forfeits_only
        self.matches = 0

    def matches_battle(self, battle: BattleRecord) -> bool:
        if self.user_id not in battle.player_ids:
            return False
        if self.wins_only and battle.winner_id != self.user_id:
            return False
        if self.forfeits_only and battle.end_type != EndType.FORFEIT:
            return False
        return True

    def handle_log_file(self, raw_json: str, path: Path) -> bool:
        battle = parse_battle(raw_json, path)
        if not self.matches_battle(battle):
            return False
        click.echo(describe_match(battle, path))
        return True

    def handle_results(self, results: List[bool]) -> None:
        self.matches = sum(1 for matched in results if matched)
