"""
MoodReel — Pipeline Orchestrator

Design patterns:
  - Chain of Responsibility: validate → classify → match → score → assemble
  - Dependency Injection: classifier, catalog and scorer are passed in
  - Facade: one coroutine per user-facing flow

Pipeline flow:
  Mood text → Prompt → LLM classification → Catalog match → (Scoring) → Assembler
"""

from __future__ import annotations

import logging
import time
from typing import List, Sequence, Tuple

from moodreel.agents.assemblers import assemble_journey, pick_character_match
from moodreel.agents.classifier import MoodClassifier
from moodreel.agents.matcher import (
    FallbackPolicy,
    match_movies,
    match_with_fallback,
    tags_for_matching,
)
from moodreel.agents.scorer import RelevanceScorer, merge_scores
from moodreel.catalog import MovieCatalog
from moodreel.clients import ChatTransport
from moodreel.config import Settings
from moodreel.errors import ValidationError
from moodreel.models import (
    CatalogMovie,
    CharacterMatchResponse,
    EmotionalJourneyResponse,
    MoodClassification,
    MoodPicksResponse,
    PartyMember,
    PartyMoodResponse,
    RecommendationsResponse,
)
from moodreel.prompts import render_party_text

logger = logging.getLogger(__name__)

MIN_PARTY_SIZE = 2
MAX_PARTY_SIZE = 4
HISTORY_WINDOW = 5


# ── Input validation (fail fast, before any network call) ─


def require_mood_text(mood_text: str) -> str:
    text = (mood_text or "").strip()
    if not text:
        raise ValidationError("Mood text is required")
    return text


def validate_party(members: Sequence[PartyMember]) -> List[PartyMember]:
    if not (MIN_PARTY_SIZE <= len(members) <= MAX_PARTY_SIZE):
        raise ValidationError(f"Party requires {MIN_PARTY_SIZE}-{MAX_PARTY_SIZE} members")
    for position, member in enumerate(members, 1):
        if not member.name.strip():
            raise ValidationError(f"Party member #{position} needs a name")
        if not (member.mood or "").strip() and not (member.mood_text or "").strip():
            raise ValidationError(f"{member.name.strip()} needs a mood or a mood description")
    return list(members)


# ── Orchestrator ──────────────────────────────────────────


class MoodPipeline:
    """All mood-driven flows over injected collaborators."""

    def __init__(
        self,
        classifier: MoodClassifier,
        catalog: MovieCatalog,
        scorer: RelevanceScorer,
        *,
        journey_limit: int = 3,
        party_limit: int = 2,
        character_limit: int = 10,
        recommendation_limit: int = 10,
        fallback_policy: FallbackPolicy = FallbackPolicy.RANDOM,
    ) -> None:
        self.classifier = classifier
        self.catalog = catalog
        self.scorer = scorer
        self.journey_limit = journey_limit
        self.party_limit = party_limit
        self.character_limit = character_limit
        self.recommendation_limit = recommendation_limit
        self.fallback_policy = fallback_policy

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: ChatTransport,
        catalog: MovieCatalog,
    ) -> "MoodPipeline":
        return cls(
            MoodClassifier(transport),
            catalog,
            RelevanceScorer(transport, concurrency=settings.scoring_concurrency),
            journey_limit=settings.journey_movie_limit,
            party_limit=settings.party_movie_limit,
            character_limit=settings.character_candidate_limit,
            recommendation_limit=settings.recommendation_limit,
            fallback_policy=FallbackPolicy(settings.fallback_policy),
        )

    # ── Emotional journey ─────────────────────────────────

    async def emotional_journey(self, mood_text: str) -> EmotionalJourneyResponse:
        t0 = time.perf_counter()
        text = require_mood_text(mood_text)

        analysis = await self.classifier.classify(text, "single")
        movies = await match_movies(
            self.catalog, tags_for_matching(analysis), limit=self.journey_limit,
        )
        journey = assemble_journey(movies)

        logger.info("Emotional journey built in %d ms", (time.perf_counter() - t0) * 1000)
        return EmotionalJourneyResponse(**journey.model_dump(), analysis=analysis)

    # ── Party mode ────────────────────────────────────────

    async def prepare_party(
        self, members: Sequence[PartyMember],
    ) -> Tuple[str, MoodClassification, List[CatalogMovie]]:
        """Validate, classify the group and fetch the candidates to score."""
        members = validate_party(members)
        mood_context = render_party_text(members)

        analysis = await self.classifier.classify(mood_context, "party")
        movies = await match_movies(
            self.catalog, tags_for_matching(analysis), limit=self.party_limit,
        )
        return mood_context, analysis, movies

    async def party_mood(self, members: Sequence[PartyMember]) -> PartyMoodResponse:
        t0 = time.perf_counter()
        mood_context, analysis, movies = await self.prepare_party(members)

        scores = await self.scorer.score_movies(mood_context, movies)
        recommendations = merge_scores(movies, scores)

        logger.info(
            "Party mood for %d member(s): %d/%d movie(s) scored in %d ms",
            len(members), len(recommendations), len(movies), (time.perf_counter() - t0) * 1000,
        )
        return PartyMoodResponse(recommendations=recommendations, analysis=analysis)

    # ── Character match ───────────────────────────────────

    async def character_match(self, mood_text: str) -> CharacterMatchResponse:
        t0 = time.perf_counter()
        text = require_mood_text(mood_text)

        analysis = await self.classifier.classify(text, "single")
        candidates = await match_movies(
            self.catalog, tags_for_matching(analysis), limit=self.character_limit,
        )
        scores = await self.scorer.score_characters(text, candidates)
        best = pick_character_match(candidates, scores)

        logger.info(
            "Character match %r (%s) scored %.1f in %d ms",
            best.score.character_name, best.movie.title, best.score.match_score,
            (time.perf_counter() - t0) * 1000,
        )
        return CharacterMatchResponse(movie_id=best.movie.id, ai_score=best.score, movie=best.movie)

    # ── Mood picks (carousel) ─────────────────────────────

    async def mood_picks(self, mood_text: str) -> MoodPicksResponse:
        text = require_mood_text(mood_text)
        analysis = await self.classifier.classify(text, "single")
        movies = await match_movies(
            self.catalog, analysis.mood_tags or analysis.top3, limit=self.recommendation_limit,
        )
        return MoodPicksResponse(analysis=analysis, movies=movies)

    # ── Personal recommendations ──────────────────────────

    async def personal_recommendations(self, user_id: str) -> RecommendationsResponse:
        """Moods of the last few watched movies → unseen movies sharing them."""
        watched = await self.catalog.watched_movie_ids(user_id)
        moods = await self.catalog.recent_history_moods(user_id, HISTORY_WINDOW)
        logger.info("User %s: %d watched, recent moods=%s", user_id, len(watched), moods)

        result = await match_with_fallback(
            self.catalog,
            moods,
            limit=self.recommendation_limit,
            policy=self.fallback_policy,
            exclude_ids=watched,
        )
        return RecommendationsResponse(
            user_id=user_id,
            movies=result.movies,
            fallback=result.fallback.value if result.fallback else None,
        )

    async def random_picks(self) -> RecommendationsResponse:
        """Signed-out visitors: an unordered sample of the catalog."""
        movies = await self.catalog.list_movies(limit=self.recommendation_limit)
        logger.info("Random picks: %d movie(s)", len(movies))
        return RecommendationsResponse(movies=movies)
