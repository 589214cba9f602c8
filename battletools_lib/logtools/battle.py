"""Structural view of a Showdown battle log (one ``.log.json`` file).

Only the fields the analyses need are modelled; everything else in the
document is ignored here (the anonymizer keeps working on the raw dict).
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import InvalidLogError
from .ids import to_id

# battle-<format>-<number>[-<password>pw]
ROOMID_PATTERN = re.compile(r"^battle-([a-z0-9]+)-(\d+)(?:-.*)?$")


def parse_roomid(roomid: Any) -> Optional[Tuple[str, str]]:
    """Split a battle room ID into (format, battle number)."""
    if not isinstance(roomid, str):
        return None
    match = ROOMID_PATTERN.match(roomid)
    if not match:
        return None
    return match.group(1), match.group(2)


def _lenient_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings pass; anything else reads as absent."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class EndType(str, Enum):
    """How a battle ended."""
    NORMAL = "normal"
    FORFEIT = "forfeit"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "EndType":
        if isinstance(value, EndType):
            return value
        if value == "normal":
            return cls.NORMAL
        if value == "forfeit":
            return cls.FORFEIT
        return cls.OTHER


class RatingSnapshot(BaseModel):
    """Ladder rating of one player at battle end (``p1rating``/``p2rating``)."""
    model_config = ConfigDict(extra="allow")

    userid: Optional[str] = None
    elo: Optional[float] = None
    w: Optional[int] = None
    l: Optional[int] = None
    t: Optional[int] = None

    @field_validator("userid", mode="before")
    @classmethod
    def _userid_as_string(cls, value: Any) -> Optional[str]:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("elo", mode="before")
    @classmethod
    def _elo_number(cls, value: Any) -> Optional[float]:
        return _lenient_number(value)

    @field_validator("w", "l", "t", mode="before")
    @classmethod
    def _counter_number(cls, value: Any) -> Optional[int]:
        number = _lenient_number(value)
        if number is None or not number.is_integer():
            return None
        return int(number)


class BattleRecord(BaseModel):
    """The parts of a battle log shared by statistics, search and anonymization.

    Validation enforces two distinct players and, when a winner is given,
    that the winner is one of them.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    p1: str
    p2: str
    winner: Optional[str] = None
    end_type: EndType = Field(default=EndType.OTHER, alias="endType")
    format: Optional[str] = None
    roomid: Optional[str] = None
    timestamp: Any = None
    p1rating: Optional[RatingSnapshot] = None
    p2rating: Optional[RatingSnapshot] = None
    log: List[str] = Field(default_factory=list)
    p1team: List[Dict[str, Any]] = Field(default_factory=list)
    p2team: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("winner", mode="before")
    @classmethod
    def _empty_winner_is_none(cls, value: Any) -> Any:
        # Showdown writes "" for ties
        if value == "":
            return None
        return value

    @field_validator("end_type", mode="before")
    @classmethod
    def _parse_end_type(cls, value: Any) -> EndType:
        return EndType.parse(value)

    @field_validator("format", "roomid", mode="before")
    @classmethod
    def _optional_string(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) and value else None

    @field_validator("p1rating", "p2rating", mode="before")
    @classmethod
    def _rating_object(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, RatingSnapshot)) else None

    @field_validator("log", mode="before")
    @classmethod
    def _log_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("p1team", "p2team", mode="before")
    @classmethod
    def _team_list(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [member for member in value if isinstance(member, dict)]

    @model_validator(mode="after")
    def _check_players(self) -> "BattleRecord":
        p1_id, p2_id = to_id(self.p1), to_id(self.p2)
        if not p1_id:
            raise ValueError("No p1 value")
        if not p2_id:
            raise ValueError("No p2 value")
        if p1_id == p2_id:
            raise ValueError(f"p1 and p2 are the same user ({p1_id})")
        if self.winner is not None and to_id(self.winner) not in (p1_id, p2_id):
            raise ValueError(f"Winner '{self.winner}' is neither p1 nor p2")
        return self

    @property
    def p1_id(self) -> str:
        return to_id(self.p1)

    @property
    def p2_id(self) -> str:
        return to_id(self.p2)

    @property
    def players(self) -> Tuple[str, str]:
        return self.p1, self.p2

    @property
    def player_ids(self) -> Tuple[str, str]:
        return self.p1_id, self.p2_id

    @property
    def winner_id(self) -> Optional[str]:
        return to_id(self.winner) if self.winner is not None else None

    @property
    def winner_slot(self) -> Optional[int]:
        """0 if p1 won, 1 if p2 won, None for ties and unfinished battles."""
        if self.winner_id is None:
            return None
        return self.player_ids.index(self.winner_id)

    @property
    def battle_format(self) -> Optional[str]:
        if self.format:
            return self.format
        parsed = parse_roomid(self.roomid)
        return parsed[0] if parsed else None

    def rating_for(self, slot: int) -> Optional[RatingSnapshot]:
        return (self.p1rating, self.p2rating)[slot]

    def team_species(self, slot: int) -> Tuple[str, ...]:
        team = (self.p1team, self.p2team)[slot]
        return tuple(
            member["species"] for member in team
            if isinstance(member.get("species"), str) and member["species"]
        )


def _describe(error: ValidationError) -> str:
    """Condense a pydantic error into one line."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(error))
    if location:
        return f"{location}: {message}"
    return message


def parse_battle(raw_json: str | bytes, path: Optional[Path] = None) -> BattleRecord:
    """Parse raw log text into a BattleRecord or raise InvalidLogError."""
    try:
        return BattleRecord.model_validate_json(raw_json)
    except ValidationError as e:
        raise InvalidLogError(f"{path or '<log>'}: {_describe(e)}") from e


def battle_from_dict(data: Any, path: Optional[Path] = None) -> BattleRecord:
    """Validate an already-decoded log document."""
    try:
        return BattleRecord.model_validate(data)
    except ValidationError as e:
        raise InvalidLogError(f"{path or '<log>'}: {_describe(e)}") from e
