"""
MoodReel — Catalog Mood Matcher

Design patterns:
  - Strategy: FallbackPolicy decides what an empty match turns into
  - Facade: match_movies() is a pure filter/sort over the catalog

The matcher itself never substitutes unrelated movies. Callers that
want a fallback go through match_with_fallback() and name the policy.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Collection, List, NamedTuple, Optional

from moodreel.catalog import MovieCatalog
from moodreel.errors import NoTagsError
from moodreel.models import CatalogMovie, MoodClassification, MovieId

logger = logging.getLogger(__name__)


class FallbackPolicy(str, Enum):
    ERROR = "error"
    RANDOM = "random"
    POPULAR = "popular"


class MatchResult(NamedTuple):
    movies: List[CatalogMovie]
    fallback: Optional[FallbackPolicy] = None


def tags_for_matching(classification: MoodClassification) -> List[str]:
    """top3 when the classifier gave one, otherwise the full mood_tags list."""
    return list(classification.top3 or classification.mood_tags)


async def match_movies(
    catalog: MovieCatalog,
    tags: Collection[str],
    *,
    limit: int,
    exclude_ids: Optional[Collection[MovieId]] = None,
) -> List[CatalogMovie]:
    """Movies whose mood overlaps `tags`, best rating first, at most `limit`."""
    wanted = [t for t in tags if t]
    if not wanted:
        raise NoTagsError("The mood analysis produced no usable mood tags")

    movies = await catalog.find_by_mood_overlap(wanted, exclude_ids=exclude_ids, limit=limit)
    logger.info(
        "Matched %d movie(s) for tags=%s (limit=%d, excluded=%d)",
        len(movies), wanted, limit, len(exclude_ids or ()),
    )
    return movies


async def match_with_fallback(
    catalog: MovieCatalog,
    tags: Collection[str],
    *,
    limit: int,
    policy: FallbackPolicy,
    exclude_ids: Optional[Collection[MovieId]] = None,
) -> MatchResult:
    """
    Run match_movies() and apply `policy` when there are no tags or no hits.

    ERROR re-raises NoTagsError / returns the empty list; RANDOM and
    POPULAR query the catalog without a mood filter (still honouring
    `exclude_ids`) and report which policy produced the movies.
    """
    try:
        movies = await match_movies(catalog, tags, limit=limit, exclude_ids=exclude_ids)
    except NoTagsError:
        if policy is FallbackPolicy.ERROR:
            raise
        movies = []

    if movies or policy is FallbackPolicy.ERROR:
        return MatchResult(movies)

    logger.info("No mood match — applying %s fallback", policy.value)
    movies = await catalog.list_movies(
        exclude_ids=exclude_ids,
        limit=limit,
        order_by_rating=policy is FallbackPolicy.POPULAR,
    )
    return MatchResult(movies, policy)
