"""
Tests for the pipeline orchestrator (fake LLM transport, in-memory catalog).
"""

from __future__ import annotations

import json
import random

import pytest

from moodreel.agents.classifier import MoodClassifier
from moodreel.agents.matcher import FallbackPolicy
from moodreel.agents.scorer import RelevanceScorer
from moodreel.catalog import InMemoryCatalog
from moodreel.errors import (
    MalformedResponseError,
    NoMatchFoundError,
    NoTagsError,
    ValidationError,
)
from moodreel.models import CatalogMovie, PartyMember
from moodreel.pipeline import MoodPipeline
from moodreel.prompts import (
    CHARACTER_SCORE_SYSTEM,
    MOVIE_SCORE_SYSTEM,
    PARTY_MOOD_SYSTEM,
    SINGLE_MOOD_SYSTEM,
)


class RoutingTransport:
    """Fake LLM: classification reply plus per-title score replies."""

    def __init__(self, classification, scores=None):
        self.classification = classification
        self.scores = scores or {}
        self.calls = []

    async def complete(self, messages):
        system = messages[0]["content"]
        self.calls.append(system)
        if system in (SINGLE_MOOD_SYSTEM, PARTY_MOOD_SYSTEM):
            if isinstance(self.classification, str):
                return self.classification
            return json.dumps(self.classification)

        title = json.loads(messages[1]["content"].rsplit("\n", 1)[-1])["title"]
        answer = self.scores.get(title)
        if answer is None:
            return "sorry, cannot score"
        if system == CHARACTER_SCORE_SYSTEM:
            return json.dumps({
                "character_name": f"Hero of {title}", "character_traits": "brave",
                "match_score": answer, "reason": "alike", "confidence": 0.7,
            })
        assert system == MOVIE_SCORE_SYSTEM
        return json.dumps({"match_score": answer, "reason": "fits", "confidence": 0.7})


def _catalog() -> InMemoryCatalog:
    movies = [
        CatalogMovie(id=1, title="Inside Out", rating=8.1, mood=["sad", "healing", "warm"]),
        CatalogMovie(id=2, title="Paddington 2", rating=7.8, mood=["warm", "cozy", "funny"]),
        CatalogMovie(id=3, title="Up", rating=8.3, mood=["healing", "sad"]),
        CatalogMovie(id=4, title="Hereditary", rating=7.3, mood=["scary", "dark"]),
    ]
    return InMemoryCatalog(movies, rng=random.Random(1))


def _pipeline(transport, catalog=None, **kwargs) -> MoodPipeline:
    return MoodPipeline(
        MoodClassifier(transport),
        catalog or _catalog(),
        RelevanceScorer(transport, concurrency=2),
        **kwargs,
    )


SAD = {"mood_tags": ["sad", "healing", "lonely"], "top_3": ["sad", "healing"], "confidence": 0.8}


class TestEmotionalJourney:

    @pytest.mark.asyncio
    async def test_journey_from_top3(self):
        result = await _pipeline(RoutingTransport(SAD)).emotional_journey("Tôi thấy buồn")
        assert result.release.title == "Up"
        assert result.reflect.title == "Inside Out"
        assert result.rebuild is None
        assert result.analysis.top3 == ["sad", "healing"]

    @pytest.mark.asyncio
    async def test_blank_text_rejected_before_llm(self):
        transport = RoutingTransport(SAD)
        with pytest.raises(ValidationError):
            await _pipeline(transport).emotional_journey("   \n ")
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_no_usable_tags(self):
        transport = RoutingTransport({"mood_tags": ["bored"], "top_3": ["bored"], "confidence": 0.3})
        with pytest.raises(NoTagsError):
            await _pipeline(transport).emotional_journey("meh")

    @pytest.mark.asyncio
    async def test_malformed_classification_surfaces(self):
        with pytest.raises(MalformedResponseError):
            await _pipeline(RoutingTransport("happy!")).emotional_journey("I am happy")


class TestPartyMood:

    MEMBERS = [
        PartyMember(name="An", mood="sad"),
        PartyMember(name="Bình", mood="warm", moodText="cần gì đó nhẹ nhàng"),
    ]

    @pytest.mark.asyncio
    async def test_scores_merged_onto_matches(self):
        warm = {"mood_tags": ["warm", "healing"], "top_3": ["warm", "healing"], "confidence": 0.7}
        transport = RoutingTransport(warm, scores={"Up": 88, "Inside Out": 74})
        result = await _pipeline(transport).party_mood(self.MEMBERS)

        assert [m.title for m in result.recommendations] == ["Up", "Inside Out"]
        assert [m.analysis.match_score for m in result.recommendations] == [88, 74]
        assert PARTY_MOOD_SYSTEM in transport.calls

    @pytest.mark.asyncio
    async def test_unscored_movie_is_dropped(self):
        warm = {"mood_tags": ["warm"], "top_3": ["warm"], "confidence": 0.7}
        transport = RoutingTransport(warm, scores={"Paddington 2": 90})
        result = await _pipeline(transport, party_limit=3).party_mood(self.MEMBERS)
        assert [m.title for m in result.recommendations] == ["Paddington 2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("members", [
        [],
        [PartyMember(name="Solo", mood="sad")],
        [PartyMember(name=f"M{i}", mood="sad") for i in range(5)],
        [PartyMember(name="An", mood="sad"), PartyMember(name=" ", mood="sad")],
        [PartyMember(name="An", mood="sad"), PartyMember(name="Bình")],
    ])
    async def test_invalid_party(self, members):
        transport = RoutingTransport(SAD)
        with pytest.raises(ValidationError):
            await _pipeline(transport).party_mood(members)
        assert transport.calls == []


class TestCharacterMatch:

    @pytest.mark.asyncio
    async def test_best_character_wins(self):
        transport = RoutingTransport(SAD, scores={"Up": 64, "Inside Out": 93})
        result = await _pipeline(transport).character_match("I hide my sadness")
        assert result.movie_id == 1
        assert result.ai_score.character_name == "Hero of Inside Out"
        assert result.movie.title == "Inside Out"

    @pytest.mark.asyncio
    async def test_no_scored_candidate(self):
        transport = RoutingTransport(SAD, scores={})
        with pytest.raises(NoMatchFoundError):
            await _pipeline(transport).character_match("I hide my sadness")


@pytest.mark.asyncio
async def test_mood_picks_use_all_mood_tags():
    cozy = {"mood_tags": ["cozy", "scary"], "top_3": ["cozy"], "confidence": 0.6}
    result = await _pipeline(RoutingTransport(cozy)).mood_picks("rainy evening")
    assert [m.title for m in result.movies] == ["Paddington 2", "Hereditary"]


class TestPersonalRecommendations:

    @pytest.mark.asyncio
    async def test_history_moods_exclude_watched(self):
        catalog = _catalog()
        await catalog.add_history("u1", 1, "2024-05-01")
        result = await _pipeline(RoutingTransport(SAD), catalog).personal_recommendations("u1")
        assert result.fallback is None
        assert [m.title for m in result.movies] == ["Up", "Paddington 2"]

    @pytest.mark.asyncio
    async def test_new_user_gets_fallback(self):
        pipeline = _pipeline(RoutingTransport(SAD), fallback_policy=FallbackPolicy.POPULAR)
        result = await pipeline.personal_recommendations("nobody")
        assert result.fallback == "popular"
        assert result.movies[0].title == "Up"

    @pytest.mark.asyncio
    async def test_error_policy_for_new_user(self):
        pipeline = _pipeline(RoutingTransport(SAD), fallback_policy=FallbackPolicy.ERROR)
        with pytest.raises(NoTagsError):
            await pipeline.personal_recommendations("nobody")
