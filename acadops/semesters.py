"""Semester label ordering.

Labels look like "Fall 2024", "Spring 24", "Summer-2023", "Short'22". They are
ordered latest first: year descending, then season descending
(fall/autumn > summer/short > spring > winter). Labels that do not parse sort
after every parseable label.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Tuple

from acadops.normalize import is_blank


SEMESTER_PATTERN = re.compile(r"([a-zA-Z]+)[\s\-_]*'?(\d{2,4})")

SEASON_WEIGHTS: Tuple[Tuple[str, int], ...] = (
    ("winter", 0),
    ("spring", 1),
    ("summer", 2),
    ("short", 2),
    ("fall", 3),
    ("autumn", 3),
)


def season_weight(word: str) -> int:
    lowered = (word or "").lower()
    for keyword, weight in SEASON_WEIGHTS:
        if keyword in lowered:
            return weight
    return 0


def parse_semester(label: object) -> Optional[Tuple[int, int]]:
    """"Spring 24" -> (2024, 1). None when the label has no season/year pair."""
    if is_blank(label):
        return None
    match = SEMESTER_PATTERN.search(str(label))
    if not match:
        return None
    year = int(match.group(2))
    if year < 100:
        year += 2000
    return year, season_weight(match.group(1))


def compare_semesters(a: str, b: str) -> int:
    """-1 when `a` is later than `b`, 1 when earlier, 0 when the same term."""
    pa = parse_semester(a)
    pb = parse_semester(b)
    if pa is None and pb is None:
        a_s, b_s = str(a or ""), str(b or "")
        if a_s == b_s:
            return 0
        return -1 if a_s > b_s else 1
    if pa is None:
        return 1
    if pb is None:
        return -1
    if pa == pb:
        return 0
    return -1 if pa > pb else 1


def sort_semesters(labels: Iterable[object]) -> List[str]:
    """Unique, non-blank labels, latest first."""
    unique: List[str] = []
    seen = set()
    for label in labels:
        if is_blank(label):
            continue
        s = str(label).strip()
        if s not in seen:
            seen.add(s)
            unique.append(s)
    return sorted(unique, key=cmp_to_key(compare_semesters))


def latest_semester(labels: Iterable[object]) -> Optional[str]:
    ordered = sort_semesters(labels)
    return ordered[0] if ordered else None


def latest_semesters(labels: Iterable[object], n: int) -> List[str]:
    return sort_semesters(labels)[: max(0, int(n))]


def semester_rank(label: object) -> Tuple[int, int]:
    """Chronological rank for on-or-before checks; unparseable labels rank oldest."""
    parsed = parse_semester(label)
    return parsed if parsed is not None else (0, -1)


def is_on_or_before(label: object, target: object) -> bool:
    return semester_rank(label) <= semester_rank(target)
