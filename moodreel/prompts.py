"""
MoodReel — Prompt Templates

Design patterns:
  - Template Method: fixed system prompts, variable user message
  - Builder: party composite text assembled member by member

Every function here is pure. User-supplied text only ever lands in the
user message, never in a system prompt.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Sequence

from moodreel.models import CatalogMovie, MoodMode, PartyMember
from moodreel.moods import vocabulary_json

_OUTPUT_RULES = """\
Output STRICT JSON:
{
  "mood_tags": [...],
  "top_3": [...],
  "confidence": 0.0-1.0
}

Rules:
- mood_tags: 3-6 tags from the list that fit %(subject)s.
- top_3: 1 to 3 tags taken from mood_tags, most important first. Use fewer than 3 only if not confident.
- confidence: a number between 0 and 1.
- Do NOT invent new mood words outside the list.
- Answer with pure JSON only, no markdown and no extra text."""

SINGLE_MOOD_SYSTEM = (
    "You are a mood analyzer for movies.\n\n"
    "Your task:\n"
    "- Read the user's input (their current feeling, what they want to watch).\n"
    "- Analyze and choose mood tags ONLY from the list below.\n\n"
    f"Available mood tags:\n{vocabulary_json()}\n\n"
    + _OUTPUT_RULES % {"subject": "the user's mood"}
)

PARTY_MOOD_SYSTEM = (
    "You are a mood analyzer for movies.\n\n"
    "This time, the input comes from *multiple people* (a group of 2-4 members).\n"
    "Each line describes one member's current feeling and, optionally, what they want to watch.\n\n"
    "Your task:\n"
    "- Read ALL members' inputs.\n"
    "- Identify each person's individual moods.\n"
    "- Compute the intersection, overlap, or collective blend of group emotions.\n"
    "- Then generate mood_tags and top_3 that best represent the group's shared emotional direction.\n\n"
    f"Available mood tags:\n{vocabulary_json()}\n\n"
    + _OUTPUT_RULES % {"subject": "the group's combined mood"}
    + "\n\nAdditional group rules:\n"
    "- If multiple members share a common mood, prioritize that mood.\n"
    "- If their emotions differ, generate a blended set that best fits all members.\n"
    "- Avoid extremes unless at least half the group expresses that feeling.\n"
    "- Confidence reflects how aligned the group is emotionally:\n"
    "  - High overlap: 0.8-1.0\n"
    "  - Medium overlap: 0.5-0.79\n"
    "  - Very different moods: 0.3-0.49"
)

MOVIE_SCORE_SYSTEM = """\
You are a movie-mood matching engine.

Your task:
- Read the following:
    + The user's mood input (what they currently feel and what they want to watch).
    + The movie information.
- Evaluate how well the movie matches what the user is looking for.
- Produce a relevance score.

Output STRICT JSON:
{
  "match_score": 0.0,
  "reason": "",
  "confidence": 0.0
}

Rules:
- match_score: float between 0 and 100 (higher is better).
- reason: brief explanation of why you gave that score (not too long).
- confidence: float between 0 and 1 indicating how confident you are in your score.
- Return pure JSON only, no extra text."""

CHARACTER_SCORE_SYSTEM = """\
You are a character-extraction and matching engine.

Your task:
- Read the following:
    + The user's input (their personality traits, current situation, or what they look for in a character).
    + The movie information (title, genre, overview, year, etc.).
- From the movie information, identify the main character(s) and describe their personality and behavior.
- Evaluate how well the main character fits the user's input.
- Produce a relevance score and include the main character's name and traits if possible.

Output STRICT JSON:
{
  "character_name": "",
  "character_traits": "",
  "match_score": 0.0,
  "reason": "",
  "confidence": 0.0
}

Rules:
- character_name: the name of the main character(s) (if available).
- character_traits: a brief description of the character's personality and behavior.
- match_score: float between 0 and 100 (higher is better).
- reason: brief explanation of why you gave that score (not too long).
- confidence: float between 0 and 1 indicating how confident you are in your score.
- Return pure JSON only, no extra text."""

_SYSTEM_BY_MODE: Dict[str, str] = {
    "single": SINGLE_MOOD_SYSTEM,
    "party": PARTY_MOOD_SYSTEM,
}


def build_mood_messages(text: str, mode: MoodMode = "single") -> List[Dict[str, str]]:
    """Render the (system, user) pair for a mood classification call."""
    return [
        {"role": "system", "content": _SYSTEM_BY_MODE[mode]},
        {"role": "user", "content": text.strip()},
    ]


def _one_line(value: Optional[str]) -> str:
    return " ".join((value or "").split())


def render_party_line(member: PartyMember) -> str:
    """Render one member on a single line; embedded line breaks are collapsed."""
    name = _one_line(member.name)
    mood = _one_line(member.mood)
    mood_text = _one_line(member.mood_text)

    line = f"{name} đang cảm thấy {mood}" if mood else name
    if mood_text:
        line += f' và chia sẻ rằng: "{mood_text}"' if mood else f' chia sẻ rằng: "{mood_text}"'
    return line


def render_party_text(members: Sequence[PartyMember]) -> str:
    """One line per member, member order preserved."""
    return "\n".join(render_party_line(m) for m in members)


def _movie_user_message(mood_context: str, movie: CatalogMovie, heading: str) -> str:
    snapshot = json.dumps(movie.snapshot(), ensure_ascii=False)
    return f"{mood_context.strip()}\n\n---\n{heading}:\n{snapshot}"


def build_movie_score_messages(mood_context: str, movie: CatalogMovie) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": MOVIE_SCORE_SYSTEM},
        {"role": "user", "content": _movie_user_message(mood_context, movie, "Thông tin phim")},
    ]


def build_character_score_messages(mood_context: str, movie: CatalogMovie) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": CHARACTER_SCORE_SYSTEM},
        {"role": "user", "content": _movie_user_message(mood_context, movie, "Thông tin nhân vật")},
    ]
