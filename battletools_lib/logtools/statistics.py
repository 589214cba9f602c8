"""Win-rate statistics over battle logs.

Per file, the aggregator only extracts a BattleOutcome. All counting
happens in handle_results, after every file has been read.

Counting: each battle contributes one entry per side to its format. The
winning side adds a win, the losing side a loss, and both add to the
total (ties only add to the total). Species on each side's team are
counted the same way.
"""

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .battle import BattleRecord, parse_battle
from .directory import LogHandler
from .errors import InvalidLogError


@dataclass(frozen=True)
class BattleOutcome:
    """What one battle contributes to the statistics."""
    format: str
    winner_slot: Optional[int]
    species: Tuple[Tuple[str, ...], Tuple[str, ...]] = ((), ())


@dataclass
class WinLoss:
    """Win/loss counters."""
    wins: int = 0
    losses: int = 0
    total: int = 0

    def record(self, won: Optional[bool]):
        self.total += 1
        if won is True:
            self.wins += 1
        elif won is False:
            self.losses += 1

    @property
    def win_rate(self) -> Optional[float]:
        if not self.total:
            return None
        return self.wins / self.total

    def to_dict(self) -> Dict[str, int]:
        return {"wins": self.wins, "losses": self.losses, "total": self.total}


@dataclass
class FormatStatistics(WinLoss):
    """Counters for one format, with a per-species breakdown."""
    species: Dict[str, WinLoss] = field(default_factory=dict)


def _format_rate(rate: Optional[float], percent: bool = False) -> str:
    if rate is None:
        return ""
    if percent:
        return f"{rate * 100:.2f}%"
    return f"{rate:.4f}"


class StatisticsAggregator(LogHandler[Optional[BattleOutcome]]):
    """Aggregates win/loss counts per format.

    Usage:
        aggregator = StatisticsAggregator(minimum_elo=1300)
        ParallelDirectoryEngine(aggregator).process([Path("logs")])
        print(aggregator.to_human_readable())
    """

    def __init__(self, minimum_elo: Optional[float] = None):
        self.minimum_elo = minimum_elo
        self._formats: Dict[str, FormatStatistics] = {}
        self.battles_counted = 0
        self.battles_excluded = 0

    @property
    def formats(self) -> Dict[str, FormatStatistics]:
        return self._formats

    def passes_elo_filter(self, battle: BattleRecord) -> bool:
        """Both players must have an ELO at or above the minimum."""
        if self.minimum_elo is None:
            return True
        for slot in (0, 1):
            rating = battle.rating_for(slot)
            if rating is None or rating.elo is None or rating.elo < self.minimum_elo:
                return False
        return True

    def handle_log_file(self, raw_json: str, path: Path) -> Optional[BattleOutcome]:
        battle = parse_battle(raw_json, path)
        battle_format = battle.battle_format
        if battle_format is None:
            raise InvalidLogError(f"{path}: No format value")
        if not self.passes_elo_filter(battle):
            return None
        return BattleOutcome(
            format=battle_format,
            winner_slot=battle.winner_slot,
            species=(battle.team_species(0), battle.team_species(1)),
        )

    def handle_results(self, results: List[Optional[BattleOutcome]]) -> None:
        for outcome in results:
            if outcome is None:
                self.battles_excluded += 1
                continue
            self.battles_counted += 1
            stats = self._formats.setdefault(outcome.format, FormatStatistics())
            for slot in (0, 1):
                won = None if outcome.winner_slot is None else outcome.winner_slot == slot
                stats.record(won)
                for species in outcome.species[slot]:
                    stats.species.setdefault(species, WinLoss()).record(won)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        """Format -> {wins, losses, total}."""
        return {name: stats.to_dict() for name, stats in sorted(self._formats.items())}

    def _rows(self) -> List[Tuple[str, str, WinLoss]]:
        rows = []
        for format_name in sorted(self._formats):
            stats = self._formats[format_name]
            rows.append((format_name, "", stats))
            for species in sorted(stats.species):
                rows.append((format_name, species, stats.species[species]))
        return rows

    def to_csv(self) -> str:
        """CSV with one row per format, then one per species in that format."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["format", "species", "wins", "losses", "total", "winrate"])
        for format_name, species, counts in self._rows():
            writer.writerow([
                format_name,
                species,
                counts.wins,
                counts.losses,
                counts.total,
                _format_rate(counts.win_rate),
            ])
        return buffer.getvalue()

    def to_human_readable(self) -> str:
        """Plain-text table."""
        rows = self._rows()
        if not rows:
            return "No battles counted."

        labels = [name if not species else f"  {species}" for name, species, _ in rows]
        width = max(20, max(len(label) for label in labels))
        lines = [
            f"{'Format / Species':{width}}  {'Wins':>8}  {'Losses':>8}  {'Total':>8}  {'Win rate':>8}",
            "-" * (width + 40),
        ]
        for label, (_, _, counts) in zip(labels, rows):
            lines.append(
                f"{label:{width}}  {counts.wins:>8}  {counts.losses:>8}  {counts.total:>8}  "
                f"{_format_rate(counts.win_rate, percent=True):>8}"
            )
        lines.append("")
        lines.append(f"Battles counted:  {self.battles_counted}")
        if self.battles_excluded:
            lines.append(f"Battles excluded: {self.battles_excluded} (below minimum ELO)")
        return "\n".join(lines)
