"""
MoodReel — Per-Movie Relevance Scorer

Design patterns:
  - Fan-out / Fan-in: one LLM call per candidate, bounded by a semaphore
  - Iterator: iter_movie_scores() yields results as they complete
  - Null Object: a failed call yields None for that slot only

Every result carries its candidate index, so list outputs stay aligned
with the candidate order regardless of completion order. A missing
score means "not scored", never zero.
"""

from __future__ import annotations

import asyncio
import logging
from typing import (
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from moodreel.agents.classifier import parse_payload
from moodreel.clients import ChatTransport
from moodreel.errors import MoodReelError
from moodreel.models import CatalogMovie, CharacterScore, RelevanceScore, ScoredMovie
from moodreel.prompts import build_character_score_messages, build_movie_score_messages

logger = logging.getLogger(__name__)

ScoreT = TypeVar("ScoreT", bound=RelevanceScore)
MessageBuilder = Callable[[str, CatalogMovie], List[Dict[str, str]]]


class RelevanceScorer:
    """Scores candidates against a mood context with bounded concurrency."""

    def __init__(self, transport: ChatTransport, *, concurrency: int = 4) -> None:
        self._transport = transport
        self._concurrency = max(1, concurrency)

    async def _score_one(
        self,
        mood_context: str,
        movie: CatalogMovie,
        build: MessageBuilder,
        model: Type[ScoreT],
    ) -> Optional[ScoreT]:
        try:
            content = await self._transport.complete(build(mood_context, movie))
            return parse_payload(content, model)
        except MoodReelError as exc:
            logger.warning("Scoring failed for movie %s (%s): %s", movie.id, movie.title, exc)
            return None

    async def _iter_scores(
        self,
        mood_context: str,
        movies: Sequence[CatalogMovie],
        build: MessageBuilder,
        model: Type[ScoreT],
    ) -> AsyncIterator[Tuple[int, Optional[ScoreT]]]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _run(index: int, movie: CatalogMovie) -> Tuple[int, Optional[ScoreT]]:
            async with semaphore:
                return index, await self._score_one(mood_context, movie, build, model)

        tasks = [asyncio.ensure_future(_run(i, m)) for i, m in enumerate(movies)]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                task.cancel()

    async def _score_all(
        self,
        mood_context: str,
        movies: Sequence[CatalogMovie],
        build: MessageBuilder,
        model: Type[ScoreT],
    ) -> List[Optional[ScoreT]]:
        results: List[Optional[ScoreT]] = [None] * len(movies)
        async for index, score in self._iter_scores(mood_context, movies, build, model):
            results[index] = score

        scored = sum(1 for r in results if r is not None)
        logger.info("Scored %d/%d candidate(s) with %s", scored, len(movies), model.__name__)
        return results

    def iter_movie_scores(
        self, mood_context: str, movies: Sequence[CatalogMovie],
    ) -> AsyncIterator[Tuple[int, Optional[RelevanceScore]]]:
        """(candidate index, score) pairs in completion order."""
        return self._iter_scores(mood_context, movies, build_movie_score_messages, RelevanceScore)

    async def score_movies(
        self, mood_context: str, movies: Sequence[CatalogMovie],
    ) -> List[Optional[RelevanceScore]]:
        return await self._score_all(mood_context, movies, build_movie_score_messages, RelevanceScore)

    async def score_characters(
        self, mood_context: str, movies: Sequence[CatalogMovie],
    ) -> List[Optional[CharacterScore]]:
        return await self._score_all(
            mood_context, movies, build_character_score_messages, CharacterScore,
        )


def merge_scores(
    movies: Sequence[CatalogMovie],
    scores: Sequence[Optional[RelevanceScore]],
) -> List[ScoredMovie]:
    """Attach scores to movies, dropping every movie whose score is missing."""
    if len(movies) != len(scores):
        raise ValueError("movies and scores must be index-aligned")
    return [
        ScoredMovie(**movie.model_dump(), analysis=score)
        for movie, score in zip(movies, scores)
        if score is not None
    ]
