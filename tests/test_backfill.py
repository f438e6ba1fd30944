"""
Tests for the offline mood-tag backfill.
"""

from __future__ import annotations

import json

import pytest

from moodreel.agents.classifier import MoodClassifier
from moodreel.backfill import backfill_moods, call_with_retry, describe_movie
from moodreel.catalog import InMemoryCatalog
from moodreel.errors import ProviderError
from moodreel.models import CatalogMovie


async def _no_sleep(_seconds):
    return None


class SequenceTransport:
    """Returns (or raises) the queued answers in order."""

    def __init__(self, answers):
        self.answers = list(answers)

    async def complete(self, messages):
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _tags(*tags) -> str:
    return json.dumps({"mood_tags": list(tags), "top_3": list(tags[:1]), "confidence": 0.7})


class TestCallWithRetry:

    @pytest.mark.asyncio
    async def test_retries_rate_limits(self):
        attempts = []

        async def call():
            attempts.append(1)
            if len(attempts) < 3:
                raise ProviderError("busy", status=429)
            return "ok"

        assert await call_with_retry(call, sleep=_no_sleep) == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_cap(self):
        async def call():
            raise ProviderError("unavailable", status=503)

        with pytest.raises(ProviderError):
            await call_with_retry(call, retries=2, sleep=_no_sleep)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        attempts = []

        async def call():
            attempts.append(1)
            raise ProviderError("bad request", status=400)

        with pytest.raises(ProviderError):
            await call_with_retry(call, sleep=_no_sleep)
        assert len(attempts) == 1


def test_describe_movie():
    movie = CatalogMovie(id=1, title="Up", year=2009, genre=["Animation"], movie_overview="Balloons.")
    assert describe_movie(movie) == "Up (2009)\nGenre: Animation\nBalloons."


@pytest.mark.asyncio
async def test_backfill_tags_untagged_movies():
    catalog = InMemoryCatalog([
        CatalogMovie(id=1, title="Up", movie_overview="Balloons."),
        CatalogMovie(id=2, title="Se7en", mood=["dark"]),
        CatalogMovie(id=3, title="Amélie", movie_overview="Paris."),
        CatalogMovie(id=4, title="Mystery Film"),
    ])
    transport = SequenceTransport([
        ProviderError("busy", status=429),
        _tags("healing", "warm", "sad"),
        ProviderError("bad", status=400),
        _tags("unknown"),
    ])

    summary = await backfill_moods(catalog, MoodClassifier(transport), sleep=_no_sleep)

    assert (summary.tagged, summary.failed, summary.skipped) == (1, 1, 1)
    assert (await catalog.get_movie(1)).mood == ["healing", "warm", "sad"]
    assert (await catalog.get_movie(2)).mood == ["dark"]
    assert (await catalog.get_movie(3)).mood == []
