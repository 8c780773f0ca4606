"""Subject-name comparison used when checking teaching assignments."""
from __future__ import annotations

import re
from typing import Callable

SubjectMatcher = Callable[[str, str], bool]

_PAREN_SUFFIX_RE = re.compile(r"\s*\([^)]*\)\s*$")


def normalize_subject(subject: str) -> str:
    """Drop a trailing parenthesised qualifier, trim and lower-case.

    "Physics (Mains)" and "physics" normalise to the same value.
    """
    return _PAREN_SUFFIX_RE.sub("", subject or "").strip().lower()


def subjects_match(subject1: str, subject2: str) -> bool:
    """Equal after normalisation, or one contains the other."""
    norm1 = normalize_subject(subject1)
    norm2 = normalize_subject(subject2)
    # An empty name would be contained in everything
    if not norm1 or not norm2:
        return False
    return norm1 == norm2 or norm1 in norm2 or norm2 in norm1


def subjects_equal(subject1: str, subject2: str) -> bool:
    norm1 = normalize_subject(subject1)
    return bool(norm1) and norm1 == normalize_subject(subject2)


def matcher_for(mode: str) -> SubjectMatcher:
    if mode == "exact":
        return subjects_equal
    return subjects_match
