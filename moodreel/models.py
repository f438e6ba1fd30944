"""
MoodReel — Pydantic Models

Shared data models used across the mood pipeline and the API contract.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from moodreel.moods import is_party_mood

MovieId = Union[int, str]
MoodMode = Literal["single", "party"]


# ── Catalog ──────────────────────────────────────────────


class CatalogMovie(BaseModel):
    """A catalog row as the mood pipeline sees it (read-only)."""

    model_config = ConfigDict(extra="ignore")

    id: MovieId
    title: str
    year: Optional[int] = None
    genre: List[str] = Field(default_factory=list)
    country: Optional[str] = None
    movie_overview: Optional[str] = None
    poster_url: Optional[str] = None
    youtube_link: Optional[str] = None
    rating: float = 0.0
    mood: List[str] = Field(default_factory=list)

    # NULL columns come back from the catalog as None
    @field_validator("genre", "mood", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("rating", mode="before")
    @classmethod
    def _null_rating(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    def snapshot(self) -> Dict[str, Any]:
        """Public fields embedded in scoring prompts."""
        return self.model_dump(
            include={"id", "title", "year", "genre", "movie_overview", "rating", "mood"},
        )


# ── LLM contracts ────────────────────────────────────────


class ClassificationPayload(BaseModel):
    """Raw shape demanded by the mood-analysis prompts."""

    mood_tags: List[str]
    top_3: List[str]
    confidence: float = Field(ge=0.0, le=1.0)


class MoodClassification(BaseModel):
    """Validated result of one classification call."""

    mood_tags: List[str] = Field(default_factory=list)
    top3: List[str] = Field(default_factory=list, max_length=3)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class RelevanceScore(BaseModel):
    """Per (movie, mood-context) score returned by the movie scoring prompt."""

    match_score: float = Field(ge=0.0, le=100.0)
    reason: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class CharacterScore(RelevanceScore):
    """Score from the character-extraction prompt."""

    character_name: str = ""
    character_traits: str = ""


# ── Pipeline results ─────────────────────────────────────


class ScoredMovie(CatalogMovie):
    analysis: RelevanceScore


class EmotionalJourney(BaseModel):
    release: Optional[CatalogMovie] = None
    reflect: Optional[CatalogMovie] = None
    rebuild: Optional[CatalogMovie] = None


class CharacterCandidate(BaseModel):
    movie: CatalogMovie
    score: CharacterScore


# ── API Contract ─────────────────────────────────────────


class MoodTextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mood_text: str = Field(default="", alias="moodText", max_length=2000)


class PartyMember(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    mood: Optional[str] = None
    mood_text: Optional[str] = Field(default=None, alias="moodText", max_length=1000)

    @field_validator("mood", mode="before")
    @classmethod
    def _preset_mood(cls, value: Any) -> Any:
        """Preset moods are a button value or a vocabulary tag; blank means none."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if not is_party_mood(value):
            raise ValueError(f"unknown preset mood {value!r}")
        return value.strip().lower()


class PartyMoodRequest(BaseModel):
    members: List[PartyMember] = Field(default_factory=list)


class EmotionalJourneyResponse(EmotionalJourney):
    analysis: MoodClassification


class PartyMoodResponse(BaseModel):
    recommendations: List[ScoredMovie]
    analysis: MoodClassification


class CharacterMatchResponse(BaseModel):
    movie_id: MovieId
    ai_score: CharacterScore
    movie: CatalogMovie


class MoodPicksResponse(BaseModel):
    analysis: MoodClassification
    movies: List[CatalogMovie]


class RecommendationsResponse(BaseModel):
    user_id: Optional[str] = None
    movies: List[CatalogMovie]
    fallback: Optional[str] = None


class ErrorResponse(BaseModel):
    detail: str
    error: str


# ── User library ─────────────────────────────────────────


class MovieRef(BaseModel):
    movie_id: MovieId


class HistoryEntry(BaseModel):
    movie_id: MovieId
    watched_at: str
    movie: Optional[CatalogMovie] = None


class SavedMovie(BaseModel):
    movie_id: MovieId
    saved_at: str


EventKind = Literal["decide", "detail"]


class ActivityEvent(BaseModel):
    """A `decide` (user picked a platform to watch on) or `detail` (opened a movie) event."""

    kind: EventKind
    movie_id: MovieId
    user_id: str = "anonymous"
    platform: Optional[str] = None
    created_at: str


class DecideLogRequest(BaseModel):
    movie_id: MovieId
    platform: Optional[str] = None
    user_id: Optional[str] = None


class DetailLogRequest(BaseModel):
    movie_id: MovieId
    user_id: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True
