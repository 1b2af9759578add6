"""Priority markers at the start of a TODO line.

Ten spellings are accepted when reading (``[H]``, ``[HIGH]``, ``!!!``, ``[M]``,
``[MED]``, ``[MEDIUM]``, ``!!``, ``[L]``, ``[LOW]``, ``!``) but only one
canonical prefix per level is ever written back, and medium is written as no
prefix at all.
"""
from __future__ import annotations

import re

from .models import DEFAULT_PRIORITY

# Order matters: first match wins, so "!!!" must be tried before "!!" and "!".
_PRIORITY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^\[H\]\s*", re.IGNORECASE), "high"),
    (re.compile(r"^\[HIGH\]\s*", re.IGNORECASE), "high"),
    (re.compile(r"^!!!\s*"), "high"),
    (re.compile(r"^\[M\]\s*", re.IGNORECASE), "medium"),
    (re.compile(r"^\[MED\]\s*", re.IGNORECASE), "medium"),
    (re.compile(r"^\[MEDIUM\]\s*", re.IGNORECASE), "medium"),
    (re.compile(r"^!!\s*"), "medium"),
    (re.compile(r"^\[L\]\s*", re.IGNORECASE), "low"),
    (re.compile(r"^\[LOW\]\s*", re.IGNORECASE), "low"),
    (re.compile(r"^!\s*"), "low"),
)

_PREFIXES = {"high": "[H] ", "low": "[L] "}


def parse_priority(text: str) -> tuple[str, str]:
    """Split a leading priority token off ``text``.

    Returns ``(priority, remaining_text)``. Without a recognised token the
    priority is medium and the text is only stripped.
    """
    text = text.strip()
    for pattern, priority in _PRIORITY_PATTERNS:
        match = pattern.match(text)
        if match:
            return priority, text[match.end():].strip()
    return DEFAULT_PRIORITY, text


def priority_prefix(priority: str) -> str:
    """Canonical prefix written in front of a TODO's text (empty for medium)."""
    return _PREFIXES.get(priority, "")
