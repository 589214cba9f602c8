"""Pokémon Showdown battle log tools."""

from .anonymizer import Anonymizer, AnonymizingHandler, PseudonymMap
from .battle import BattleRecord, EndType, RatingSnapshot, parse_battle
from .directory import EngineConfig, LogHandler, ParallelDirectoryEngine, RunStats
from .errors import BattleToolsError, ConfigurationError, EngineError, InvalidLogError, LogIOError
from .ids import to_id
from .pseudonyms import PseudonymPool
from .search import BattleSearcher
from .statistics import StatisticsAggregator

__all__ = [
    "Anonymizer",
    "AnonymizingHandler",
    "PseudonymMap",
    "BattleRecord",
    "EndType",
    "RatingSnapshot",
    "parse_battle",
    "EngineConfig",
    "LogHandler",
    "ParallelDirectoryEngine",
    "RunStats",
    "BattleToolsError",
    "ConfigurationError",
    "EngineError",
    "InvalidLogError",
    "LogIOError",
    "to_id",
    "PseudonymPool",
    "BattleSearcher",
    "StatisticsAggregator",
]
