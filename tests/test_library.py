"""
Tests for the per-user library: watch history, saved movies, activity log.
"""

from __future__ import annotations

import itertools
import random

import pytest

from moodreel.agents.classifier import MoodClassifier
from moodreel.agents.matcher import FallbackPolicy
from moodreel.agents.scorer import RelevanceScorer
from moodreel.catalog import InMemoryCatalog
from moodreel.errors import NoMatchFoundError, ValidationError
from moodreel.library import UserLibrary
from moodreel.models import CatalogMovie
from moodreel.pipeline import MoodPipeline


def _catalog() -> InMemoryCatalog:
    return InMemoryCatalog([
        CatalogMovie(id=1, title="Inside Out", rating=8.1, mood=["sad", "healing"]),
        CatalogMovie(id=2, title="Up", rating=8.3, mood=["healing", "warm"]),
        CatalogMovie(id=3, title="Hereditary", rating=7.3, mood=["scary"]),
    ], rng=random.Random(0))


def _library(catalog=None) -> UserLibrary:
    ticks = (f"2026-01-{day:02d}T00:00:00+00:00" for day in itertools.count(1))
    return UserLibrary(catalog or _catalog(), clock=lambda: next(ticks))


class TestHistory:

    @pytest.mark.asyncio
    async def test_newest_first_with_movie_details(self):
        library = _library()
        await library.add_to_history("u1", 1)
        await library.add_to_history("u1", 3)

        entries = await library.history("u1")
        assert [e.movie_id for e in entries] == [3, 1]
        assert entries[0].movie.title == "Hereditary"
        assert entries[0].watched_at == "2026-01-02T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_unknown_movie_rejected(self):
        with pytest.raises(NoMatchFoundError):
            await _library().add_to_history("u1", 99)

    @pytest.mark.asyncio
    async def test_blank_user_rejected(self):
        with pytest.raises(ValidationError):
            await _library().history("  ")

    @pytest.mark.asyncio
    async def test_delete_removes_every_watch_of_the_movie(self):
        library = _library()
        for movie_id in (1, 2, 1):
            await library.add_to_history("u1", movie_id)

        await library.remove_from_history("u1", "1")
        assert [e.movie_id for e in await library.history("u1")] == [2]

    @pytest.mark.asyncio
    async def test_recorded_history_drives_personal_recommendations(self):
        catalog = _catalog()
        library = _library(catalog)
        pipeline = MoodPipeline(
            MoodClassifier(None), catalog, RelevanceScorer(None),
            fallback_policy=FallbackPolicy.ERROR,
        )
        await library.add_to_history("u1", 1)

        result = await pipeline.personal_recommendations("u1")
        assert result.fallback is None
        assert [m.title for m in result.movies] == ["Up"]


class TestSaved:

    @pytest.mark.asyncio
    async def test_saving_twice_keeps_one_entry(self):
        library = _library()
        await library.save("u1", 2)
        await library.save("u1", 3)
        await library.save("u1", 2)

        saved = await library.saved("u1")
        assert [s.movie_id for s in saved] == [2, 3]
        assert await library.saved("someone-else") == []

    @pytest.mark.asyncio
    async def test_unknown_movie_rejected(self):
        with pytest.raises(NoMatchFoundError):
            await _library().save("u1", "nope")


class TestActivityLog:

    @pytest.mark.asyncio
    async def test_decide_event_for_user(self):
        catalog = _catalog()
        event = await _library(catalog).log_event("decide", 2, user_id="u1", platform="netflix")
        assert catalog.events == [event]
        assert event.user_id == "u1"
        assert event.platform == "netflix"

    @pytest.mark.asyncio
    async def test_missing_user_is_anonymous(self):
        event = await _library().log_event("detail", 3)
        assert event.user_id == "anonymous"
        assert event.platform is None
