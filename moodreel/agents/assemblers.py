"""
MoodReel — Result Assemblers

Thin shaping layers over ranked / scored candidates: the three-role
emotional journey and the single best character match.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from moodreel.errors import NoMatchFoundError
from moodreel.models import (
    CatalogMovie,
    CharacterCandidate,
    CharacterScore,
    EmotionalJourney,
)

JOURNEY_ROLES = ("release", "reflect", "rebuild")


def assemble_journey(movies: Sequence[CatalogMovie]) -> EmotionalJourney:
    """Slot the first three movies into release / reflect / rebuild; missing roles stay None."""
    slots = {role: (movies[i] if i < len(movies) else None) for i, role in enumerate(JOURNEY_ROLES)}
    return EmotionalJourney(**slots)


def pick_character_match(
    movies: Sequence[CatalogMovie],
    scores: Sequence[Optional[CharacterScore]],
) -> CharacterCandidate:
    """
    Highest match_score wins; on a tie the earliest candidate is kept.
    Raises NoMatchFoundError when no candidate has a score.
    """
    candidates: List[CharacterCandidate] = [
        CharacterCandidate(movie=movie, score=score)
        for movie, score in zip(movies, scores)
        if score is not None
    ]
    if not candidates:
        raise NoMatchFoundError("No valid character matches found")

    best = candidates[0]
    for candidate in candidates[1:]:
        # strict > keeps the first of equal scores
        if candidate.score.match_score > best.score.match_score:
            best = candidate
    return best
