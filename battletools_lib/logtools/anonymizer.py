"""Anonymize battle logs for redistribution.

Each log gets its own PseudonymMap: every user that appears (both players,
their ladder user IDs, spectators named in the transcript) is replaced by a
pseudonym that is consistent within the battle and unrelated to the
pseudonyms used in any other battle.

Handles:
- Envelope fields: p1, p2, winner, p1rating/p2rating userid
- Transcript lines: username fields of join/leave/rename/player/win/chat
  lines, plus substring replacement of known spellings in all other fields
- Redaction: comment, inputLog, room password; with is_safe also
  timestamps and rating numbers

The transcript keeps its line count and every line keeps its "|" field count.
"""

import itertools
import json
import os
import re
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .battle import BattleRecord, battle_from_dict, parse_roomid
from .directory import LogHandler
from .errors import ConfigurationError, InvalidLogError, LogIOError
from .ids import to_id
from .pseudonyms import PseudonymPool

REDACTED = "[REDACTED]"

# Shorter spellings are only replaced in free text as whole words
MIN_SUBSTRING_LENGTH = 3

# Transcript line type -> positions (in line.split("|")) holding a username
NAME_FIELDS: Dict[str, Tuple[int, ...]] = {
    "j": (2,), "J": (2,), "join": (2,),
    "l": (2,), "L": (2,), "leave": (2,),
    "n": (2, 3), "N": (2, 3), "name": (2, 3),
    "player": (3,),
    "win": (2,),
    "c": (2,), "chat": (2,),
    "c:": (3,),
}

RATING_ANNOUNCEMENT = re.compile(r"'s rating:\s*\d")
FILENAME_SUFFIX = re.compile(r"(\.log)?\.json$")
TRAILING_NUMBER = re.compile(r"(\d+)$")


def _spelling_pattern(spelling: str) -> str:
    """Regex for one known spelling; short ones ("al") must stand alone."""
    if len(spelling) >= MIN_SUBSTRING_LENGTH:
        return re.escape(spelling)
    return rf"(?<![A-Za-z0-9]){re.escape(spelling)}(?![A-Za-z0-9])"


def split_sigil(value: str) -> Tuple[str, str]:
    """Split a username field into (rank sigil, name): "☆Annika" -> ("☆", "Annika")."""
    if value and not value[0].isalnum():
        return value[0], value[1:]
    return "", value


@dataclass
class Participant:
    """One user within a single battle."""
    ids: Set[str] = field(default_factory=set)
    names: Set[str] = field(default_factory=set)  # spellings seen in the log
    pseudonym: Optional[str] = None


class PseudonymMap:
    """Per-battle mapping from user ID to pseudonym.

    Usage:
        pseudonyms = PseudonymMap()
        annika = pseudonyms.add("Annika")
        pseudonyms.add("annika", participant=annika)
        pseudonyms.assign(PseudonymPool())
        pseudonyms.replace_text("gg Annika")  # "gg Fez42"
    """

    def __init__(self):
        self._by_id: Dict[str, Participant] = {}
        self.participants: List[Participant] = []
        self._replacements: Dict[str, str] = {}
        self._pattern: Optional[re.Pattern] = None

    def add(self, *names: Any, participant: Optional[Participant] = None) -> Optional[Participant]:
        """Register spellings that denote one user.

        Spellings whose ID is unknown join the participant of the first
        known spelling (or a new participant). An ID that already belongs to
        a different participant is left with that participant.
        """
        spellings = [name.strip() for name in names if isinstance(name, str) and to_id(name)]
        if not spellings:
            return participant

        if participant is None:
            for spelling in spellings:
                participant = self._by_id.get(to_id(spelling))
                if participant is not None:
                    break
        if participant is None:
            participant = Participant()
            self.participants.append(participant)

        for spelling in spellings:
            user_id = to_id(spelling)
            existing = self._by_id.get(user_id)
            if existing is not None and existing is not participant:
                continue
            self._by_id[user_id] = participant
            participant.ids.add(user_id)
            participant.names.add(spelling)
        return participant

    def lookup(self, name: Any) -> Optional[Participant]:
        return self._by_id.get(to_id(name))

    def __len__(self) -> int:
        return len(self.participants)

    def assign(self, pool: PseudonymPool):
        """Give every participant a pseudonym and build the text replacer."""
        avoid = set(self._by_id)
        for participant in self.participants:
            participant.pseudonym = pool.draw(avoid)

        self._replacements = {}
        for participant in self.participants:
            for spelling in participant.names | participant.ids:
                if "|" not in spelling:
                    self._replacements[spelling.lower()] = participant.pseudonym

        if self._replacements:
            # Longest first so "Rust Haters" wins over "Rust Hater"
            keys = sorted(self._replacements, key=len, reverse=True)
            self._pattern = re.compile("|".join(_spelling_pattern(key) for key in keys), re.IGNORECASE)
        else:
            self._pattern = None

    def pseudonym_for(self, name: Any) -> str:
        participant = self.lookup(name)
        if participant is None or participant.pseudonym is None:
            raise KeyError(f"No pseudonym assigned for {name!r}")
        return participant.pseudonym

    def _substitute(self, match: re.Match) -> str:
        text = match.group(0)
        pseudonym = self._replacements.get(text.lower())
        if pseudonym is None:
            participant = self.lookup(text)
            pseudonym = participant.pseudonym if participant else text
        return pseudonym

    def replace_text(self, text: str) -> str:
        """Replace every known spelling in free text (single pass)."""
        if self._pattern is None or not text:
            return text
        return self._pattern.sub(self._substitute, text)

    def replace_name(self, value: str) -> str:
        """Rewrite a username field, keeping its rank sigil."""
        sigil, name = split_sigil(value)
        participant = self.lookup(name)
        if participant is None or participant.pseudonym is None:
            return self.replace_text(value)
        return sigil + participant.pseudonym


def transcript_names(line: str) -> List[Tuple[str, ...]]:
    """Usernames named by one transcript line, grouped by user.

    Rename lines (|n|NEW NAME|oldid) name one user twice.
    """
    parts = line.split("|")
    if len(parts) < 3 or parts[0] != "":
        return []
    line_type = parts[1]
    positions = [i for i in NAME_FIELDS.get(line_type, ()) if i < len(parts)]
    names = [split_sigil(parts[i])[1] for i in positions]
    if line_type in ("n", "N", "name"):
        return [tuple(names)]
    return [(name,) for name in names]


class Anonymizer:
    """Rewrites one battle log at a time.

    Safe to share between worker threads: all per-battle state lives in
    local variables, apart from the placeholder counter for battles
    without a number.

    Usage:
        anonymizer = Anonymizer(is_safe=True)
        json_text, battle_number = anonymizer.anonymize(raw_json, path)
    """

    def __init__(self, is_safe: bool = False):
        self.is_safe = is_safe
        self._placeholders = itertools.count(1)
        self._placeholder_lock = threading.Lock()

    def anonymize(self, raw_json: str, path: Optional[Path] = None) -> Tuple[str, str]:
        """Return (anonymized JSON text, battle number)."""
        try:
            data = json.loads(raw_json)
        except (ValueError, RecursionError) as e:
            raise InvalidLogError(f"{path or '<log>'}: JSON parse error: {e}") from e
        battle = battle_from_dict(data, path)

        pseudonyms = self.collect_participants(battle)
        pseudonyms.assign(PseudonymPool())
        self._rewrite(data, battle, pseudonyms)

        battle_number = self.battle_number(battle, path)
        self._redact(data, battle, battle_number)

        return json.dumps(data, ensure_ascii=False, separators=(",", ":")), battle_number

    def collect_participants(self, battle: BattleRecord) -> PseudonymMap:
        """Find every user in the battle; players first, then spectators."""
        pseudonyms = PseudonymMap()
        for slot, player in enumerate(battle.players):
            participant = pseudonyms.add(player)
            rating = battle.rating_for(slot)
            if rating is not None:
                pseudonyms.add(rating.userid, participant=participant)
        for line in battle.log:
            for names in transcript_names(line):
                pseudonyms.add(*names)
        return pseudonyms

    def _rewrite(self, data: Dict[str, Any], battle: BattleRecord, pseudonyms: PseudonymMap):
        data["p1"] = pseudonyms.pseudonym_for(battle.p1)
        data["p2"] = pseudonyms.pseudonym_for(battle.p2)
        if battle.winner is not None:
            data["winner"] = pseudonyms.pseudonym_for(battle.winner)

        for slot, key in enumerate(("p1rating", "p2rating")):
            rating = data.get(key)
            if isinstance(rating, dict) and rating.get("userid"):
                player = battle.players[slot]
                userid = battle.rating_for(slot).userid
                participant = pseudonyms.lookup(userid) or pseudonyms.lookup(player)
                rating["userid"] = to_id(participant.pseudonym)

        if isinstance(data.get("log"), list):
            data["log"] = [self.rewrite_line(line, pseudonyms) for line in battle.log]

        for key in ("p1team", "p2team"):
            team = data.get(key)
            if not isinstance(team, list):
                continue
            for member in team:
                if isinstance(member, dict) and isinstance(member.get("name"), str):
                    member["name"] = pseudonyms.replace_text(member["name"])

    def rewrite_line(self, line: str, pseudonyms: PseudonymMap) -> str:
        """Rewrite one transcript line without changing its field count."""
        parts = line.split("|")
        if len(parts) < 2 or parts[0] != "":
            return pseudonyms.replace_text(line)

        line_type = parts[1]
        name_positions = NAME_FIELDS.get(line_type, ())
        for i in range(2, len(parts)):
            if i in name_positions:
                parts[i] = pseudonyms.replace_name(parts[i])
            else:
                parts[i] = pseudonyms.replace_text(parts[i])

        if self.is_safe:
            self._redact_line(line_type, parts)
        return "|".join(parts)

    def _redact_line(self, line_type: str, parts: List[str]):
        if line_type in ("t:", "c:") and len(parts) > 2:
            parts[2] = "0"
        elif line_type == "player" and len(parts) > 5:
            parts[5] = ""
        elif line_type == "raw" and len(parts) > 2 and RATING_ANNOUNCEMENT.search("|".join(parts[2:])):
            parts[2:] = [REDACTED] + [""] * (len(parts) - 3)

    def _redact(self, data: Dict[str, Any], battle: BattleRecord, battle_number: str):
        data.pop("comment", None)
        data.pop("inputLog", None)

        if "roomid" in data:
            battle_format = battle.battle_format or "unknown"
            data["roomid"] = f"battle-{battle_format}-{battle_number}"

        if not self.is_safe:
            return

        if "timestamp" in data:
            data["timestamp"] = REDACTED
        for key in ("p1rating", "p2rating"):
            rating = data.get(key)
            if not isinstance(rating, dict):
                continue
            for field_name in list(rating):
                if field_name != "userid":
                    rating[field_name] = REDACTED

    def battle_number(self, battle: BattleRecord, path: Optional[Path] = None) -> str:
        """Battle number from the room ID, else the file name, else a placeholder."""
        parsed = parse_roomid(battle.roomid)
        if parsed is not None:
            return parsed[1]
        if path is not None:
            stem = FILENAME_SUFFIX.sub("", Path(path).name)
            match = TRAILING_NUMBER.search(stem)
            if match:
                return match.group(1)
        with self._placeholder_lock:
            return f"unnumbered-{next(self._placeholders)}"


def write_atomically(out_file: Path, text: str):
    """Write via a temporary file so no partial output is ever visible."""
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=out_file.parent,
            prefix=f".{out_file.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(text)
        os.replace(tmp_path, out_file)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise LogIOError(f"{out_file}: {e.strerror or e}") from e


class AnonymizingHandler(LogHandler[None]):
    """Writes an anonymized copy of every log to one output directory."""

    def __init__(self, output_directory: Optional[Path | str], is_safe: bool = False):
        if output_directory is None or str(output_directory) == "":
            raise ConfigurationError("An output directory is required for anonymization")
        self.output_directory = Path(output_directory)
        try:
            self.output_directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create output directory {self.output_directory}: {e.strerror or e}"
            ) from e
        self.anonymizer = Anonymizer(is_safe=is_safe)

    def handle_log_file(self, raw_json: str, path: Path) -> None:
        json_text, battle_number = self.anonymizer.anonymize(raw_json, path)
        write_atomically(self.output_directory / f"{battle_number}.log.json", json_text)

    def handle_results(self, results: List[None]) -> None:
        pass
