"""
MoodReel — Mood Classification Agent

Design patterns:
  - Adapter: turns a provider's raw content into a MoodClassification
  - Template Method: prompt pair comes from moodreel.prompts

Sends one prompt pair per call, parses the strict-JSON reply and
validates its shape. Unknown tags are dropped; a reply that is not the
demanded JSON object never yields a partial result.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from moodreel.clients import ChatTransport
from moodreel.errors import MalformedResponseError
from moodreel.models import ClassificationPayload, MoodClassification, MoodMode
from moodreel.moods import known_tags
from moodreel.prompts import build_mood_messages

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def load_json_object(content: str) -> Dict[str, Any]:
    """Parse `content` as one JSON object, tolerating surrounding code fences."""
    cleaned = _FENCE_OPEN.sub("", content.strip())
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("LLM returned invalid JSON: %s", content[:500])
        raise MalformedResponseError("LLM response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("LLM response is not a JSON object")
    return data


def parse_payload(content: str, model: Type[PayloadT]) -> PayloadT:
    """Parse and shape-check `content` against one of the prompt contracts."""
    data = load_json_object(content)
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        logger.error("LLM JSON has the wrong shape for %s: %s", model.__name__, exc)
        raise MalformedResponseError(f"LLM response does not match {model.__name__}") from exc


def parse_classification(content: str) -> MoodClassification:
    """Content string → MoodClassification (vocabulary-filtered, top3 capped at 3)."""
    payload = parse_payload(content, ClassificationPayload)

    mood_tags = known_tags(payload.mood_tags)
    top3 = known_tags(payload.top_3)

    dropped = (len(payload.mood_tags) - len(mood_tags)) + (len(payload.top_3) - len(top3))
    if dropped:
        logger.warning("Dropped %d out-of-vocabulary mood tag(s): %s", dropped, payload)
    if len(top3) > 3:
        logger.warning("top_3 had %d tags, keeping the first 3", len(top3))
        top3 = top3[:3]

    return MoodClassification(
        mood_tags=mood_tags,
        top3=top3,
        confidence=payload.confidence,
    )


class MoodClassifier:
    """LLM-backed mood classifier for single and party input."""

    def __init__(self, transport: ChatTransport) -> None:
        self.transport = transport

    async def classify(self, text: str, mode: MoodMode = "single") -> MoodClassification:
        messages = build_mood_messages(text, mode)
        content = await self.transport.complete(messages)
        result = parse_classification(content)
        logger.info(
            "Classified mood (%s): tags=%s top3=%s confidence=%.2f",
            mode, result.mood_tags, result.top3, result.confidence,
        )
        return result
