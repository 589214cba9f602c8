"""Generate pronounceable pseudonyms for battle participants.

Pseudonyms are a 3-letter CVC (consonant-vowel-consonant) name plus two
digits (more in very crowded battles), like "Fez42" or "Bax07". A pool lives
for one battle only, so the same user gets unrelated pseudonyms in different
battles.

Names are pre-shuffled so assignment order doesn't leak information.
"""

import random
from typing import Iterable, List, Optional, Set

from .errors import InvalidLogError
from .ids import to_id


CONSONANTS = list("bcdfghjklmnprstvwxz")  # 19 consonants (no q)
VOWELS = list("aeiou")  # 5 vowels


def generate_cvc_names() -> List[str]:
    """Generate all CVC combinations.

    Returns ~1805 pronounceable 3-letter names like "Bax", "Cog", "Dip".
    """
    names = []
    for c1 in CONSONANTS:
        for v in VOWELS:
            for c2 in CONSONANTS:
                names.append(f"{c1.upper()}{v}{c2}")
    return names


_CVC_NAMES = generate_cvc_names()


# IDs shorter than this are only compared for equality
MIN_OVERLAP_LENGTH = 3

SUFFIX_DIGITS = 2
MAX_SUFFIX_DIGITS = 6


def overlaps(candidate_id: str, original_id: str) -> bool:
    """True if the IDs are equal, or either contains the other."""
    if candidate_id == original_id:
        return True
    if len(original_id) < MIN_OVERLAP_LENGTH:
        return False
    return candidate_id in original_id or original_id in candidate_id


class PseudonymPool:
    """Hands out distinct pseudonyms for one battle.

    Once every CVC name has been used, the names are reshuffled and handed
    out again with one more suffix digit ("Fez042"), up to MAX_SUFFIX_DIGITS.

    Usage:
        pool = PseudonymPool()
        anon = pool.draw(avoid_ids={"annika", "rusthater"})  # e.g., "Fez42"
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random(random.SystemRandom().getrandbits(64))
        self._names = _CVC_NAMES.copy()
        self._rng.shuffle(self._names)
        self._index = 0
        self._digits = SUFFIX_DIGITS
        self._issued: Set[str] = set()

    def _next_name(self) -> Optional[str]:
        if self._index >= len(self._names):
            if self._digits >= MAX_SUFFIX_DIGITS:
                return None
            self._digits += 1
            self._index = 0
            self._rng.shuffle(self._names)
        name = self._names[self._index]
        self._index += 1
        return f"{name}{self._rng.randrange(10 ** self._digits):0{self._digits}d}"

    def draw(self, avoid_ids: Iterable[str] = ()) -> str:
        """Get the next pseudonym that shares no substring-ID with avoid_ids."""
        avoid = [original for original in avoid_ids if original]
        while True:
            name = self._next_name()
            if name is None:
                raise InvalidLogError(
                    f"Exhausted pseudonym pool ({len(self._issued)} pseudonyms issued). "
                    "Too many unique users in one battle."
                )
            candidate_id = to_id(name)
            if candidate_id in self._issued:
                continue
            if any(overlaps(candidate_id, original) for original in avoid):
                continue
            self._issued.add(candidate_id)
            return name

    @property
    def remaining(self) -> int:
        """Candidates left before the pool is exhausted."""
        rounds_left = MAX_SUFFIX_DIGITS - self._digits
        return rounds_left * len(self._names) + len(self._names) - self._index
