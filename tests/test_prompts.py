"""
Tests for the prompt templates.
"""

from __future__ import annotations

import json
import re

import pytest
from pydantic import ValidationError as PydanticValidationError

from moodreel.models import CatalogMovie, PartyMember
from moodreel.moods import MOOD_TAGS
from moodreel.prompts import (
    CHARACTER_SCORE_SYSTEM,
    MOVIE_SCORE_SYSTEM,
    PARTY_MOOD_SYSTEM,
    SINGLE_MOOD_SYSTEM,
    build_character_score_messages,
    build_mood_messages,
    build_movie_score_messages,
    render_party_text,
)


def _vocabulary_in(prompt: str) -> list[str]:
    block = re.search(r"Available mood tags:\n\[(.*?)\]", prompt).group(1)
    return re.findall(r'"([a-z]+)"', block)


class TestMoodMessages:

    def test_single_mode_shape(self):
        messages = build_mood_messages("  Tôi buồn quá  ", "single")
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == SINGLE_MOOD_SYSTEM
        assert messages[1]["content"] == "Tôi buồn quá"

    def test_party_mode_uses_party_prompt(self):
        messages = build_mood_messages("An đang cảm thấy happy", "party")
        assert messages[0]["content"] == PARTY_MOOD_SYSTEM

    @pytest.mark.parametrize("text", ["I feel lonely tonight", "want something scary and dark"])
    def test_user_text_never_in_system_prompt(self, text):
        system, user = build_mood_messages(text, "single")
        assert text not in system["content"]
        assert user["content"] == text

    @pytest.mark.parametrize("prompt", [SINGLE_MOOD_SYSTEM, PARTY_MOOD_SYSTEM])
    def test_vocabulary_is_exactly_the_sixteen_tags(self, prompt):
        assert _vocabulary_in(prompt) == list(MOOD_TAGS)
        assert len(MOOD_TAGS) == 16

    @pytest.mark.parametrize("prompt", [SINGLE_MOOD_SYSTEM, PARTY_MOOD_SYSTEM])
    def test_output_contract_fields(self, prompt):
        for field in ('"mood_tags"', '"top_3"', '"confidence"'):
            assert field in prompt
        assert "1 to 3" in prompt


class TestPartyText:

    def test_one_line_per_member_in_order(self):
        members = [
            PartyMember(name="An", mood="happy"),
            PartyMember(name="Bình", mood="sad", moodText="hôm nay mệt"),
            PartyMember(name="Chi", mood="excited"),
        ]
        lines = render_party_text(members).split("\n")
        assert len(lines) == 3
        assert lines[0] == "An đang cảm thấy happy"
        assert lines[1] == 'Bình đang cảm thấy sad và chia sẻ rằng: "hôm nay mệt"'
        assert lines[2].startswith("Chi")

    @pytest.mark.parametrize("size", [2, 3, 4])
    def test_line_count_matches_member_count(self, size):
        members = [PartyMember(name=f"Member{i}", mood="cozy") for i in range(size)]
        lines = render_party_text(members).split("\n")
        assert len(lines) == size
        for i, line in enumerate(lines):
            assert f"Member{i}" in line

    def test_free_text_only_member(self):
        text = render_party_text([PartyMember(name="Dũng", moodText="muốn cười")])
        assert text == 'Dũng chia sẻ rằng: "muốn cười"'

    def test_line_breaks_inside_fields_are_collapsed(self):
        members = [
            PartyMember(name="An", mood="sad", moodText="mệt quá\nmuốn ngủ"),
            PartyMember(name="Bình\r\nNguyễn", mood="happy"),
        ]
        lines = render_party_text(members).split("\n")
        assert lines == [
            'An đang cảm thấy sad và chia sẻ rằng: "mệt quá muốn ngủ"',
            "Bình Nguyễn đang cảm thấy happy",
        ]


class TestPartyMemberMood:

    @pytest.mark.parametrize("mood, expected", [
        ("chill", "chill"),
        ("Comfort", "comfort"),
        (" cozy ", "cozy"),
        ("", None),
        (None, None),
    ])
    def test_presets_and_tags_accepted(self, mood, expected):
        assert PartyMember(name="An", mood=mood).mood == expected

    def test_unknown_preset_rejected(self):
        with pytest.raises(PydanticValidationError):
            PartyMember(name="An", mood="hangry")


class TestScoreMessages:

    def _movie(self):
        return CatalogMovie(
            id=7, title="Paddington 2", year=2017, genre=["Family"],
            movie_overview="A bear in London.", rating=8.1, mood=["warm", "cozy"],
            poster_url="https://img/p.jpg",
        )

    def test_movie_score_prompt(self):
        system, user = build_movie_score_messages("An đang cảm thấy sad", self._movie())
        assert system["content"] == MOVIE_SCORE_SYSTEM
        head, snapshot = user["content"].split("Thông tin phim:\n")
        assert head.startswith("An đang cảm thấy sad\n\n---")
        data = json.loads(snapshot)
        assert data["title"] == "Paddington 2"
        assert data["mood"] == ["warm", "cozy"]
        assert "poster_url" not in data

    def test_character_score_prompt(self):
        system, user = build_character_score_messages("I am shy but brave", self._movie())
        assert system["content"] == CHARACTER_SCORE_SYSTEM
        assert "Thông tin nhân vật:" in user["content"]
        assert "character_name" in system["content"]
