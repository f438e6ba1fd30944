"""
MoodReel — Mood Tag Vocabulary

The closed set of 16 tags shared by the classifier prompts and the
catalog's `mood` column. Nothing outside this set enters the domain.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Tuple


class MoodTag(str, Enum):
    HAPPY = "happy"
    FUNNY = "funny"
    SAD = "sad"
    DARK = "dark"
    LONELY = "lonely"
    WARM = "warm"
    HEALING = "healing"
    ROMANTIC = "romantic"
    EXCITED = "excited"
    TENSE = "tense"
    THRILLING = "thrilling"
    SCARY = "scary"
    MYSTERIOUS = "mysterious"
    NOSTALGIC = "nostalgic"
    COZY = "cozy"
    CHAOTIC = "chaotic"


MOOD_TAGS: Tuple[str, ...] = tuple(tag.value for tag in MoodTag)

_TAG_SET = frozenset(MOOD_TAGS)


def is_mood_tag(value: object) -> bool:
    return isinstance(value, str) and value.strip().lower() in _TAG_SET


def known_tags(values: Iterable[object]) -> List[str]:
    """Lower-case, de-duplicate and drop anything outside the vocabulary (order kept)."""
    seen: List[str] = []
    for value in values:
        if not is_mood_tag(value):
            continue
        tag = str(value).strip().lower()
        if tag not in seen:
            seen.append(tag)
    return seen


def vocabulary_json() -> str:
    """The tag list as it is embedded in the system prompts."""
    return "[" + ", ".join(f'"{tag}"' for tag in MOOD_TAGS) + "]"


# Party-mode preset buttons; several of them are not catalog tags
PARTY_PRESETS: Tuple[str, ...] = ("chill", "excited", "romantic", "nostalgic", "adventure", "comfort")


def is_party_mood(value: object) -> bool:
    """A preset button value or any vocabulary tag."""
    if is_mood_tag(value):
        return True
    return isinstance(value, str) and value.strip().lower() in PARTY_PRESETS
