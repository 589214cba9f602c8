"""Canonical user identifiers.

Showdown compares users by ID, not by display name: "☆Rust Hater",
"rust hater" and "RUSTHATER" all denote the user ``rusthater``.
"""

import re
from typing import Any

_NON_ID_CHARS = re.compile(r"[^a-z0-9]+")


def to_id(text: Any) -> str:
    """Lowercase and strip everything that is not ASCII alphanumeric.

    Non-string input (None, numbers from sloppy logs) yields "".
    """
    if not isinstance(text, str):
        return ""
    return _NON_ID_CHARS.sub("", text.lower())
