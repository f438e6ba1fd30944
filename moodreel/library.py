"""
MoodReel — User Library

Watch history, saved movies and activity events for a user id.

Design patterns:
  - Facade: one object the HTTP layer talks to for per-user state
  - Repository: persistence is delegated to the injected MovieCatalog

Identity is whatever user id the caller supplies; authentication happens
upstream. History written here is what personal recommendations read.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from moodreel.catalog import MovieCatalog
from moodreel.errors import NoMatchFoundError, ValidationError
from moodreel.models import ActivityEvent, EventKind, HistoryEntry, MovieId, SavedMovie

logger = logging.getLogger(__name__)

HISTORY_PAGE = 50
ANONYMOUS = "anonymous"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_user(user_id: str) -> str:
    user = (user_id or "").strip()
    if not user:
        raise ValidationError("User id is required")
    return user


class UserLibrary:
    """Per-user history, saves and activity logging over a MovieCatalog."""

    def __init__(
        self,
        catalog: MovieCatalog,
        *,
        history_limit: int = HISTORY_PAGE,
        clock: Optional[Callable[[], str]] = None,
    ) -> None:
        self.catalog = catalog
        self.history_limit = history_limit
        self._clock = clock or _utc_now

    async def _require_movie(self, movie_id: MovieId) -> None:
        if await self.catalog.get_movie(movie_id) is None:
            raise NoMatchFoundError(f"Movie {movie_id} is not in the catalog")

    # ── Watch history ─────────────────────────────────────

    async def add_to_history(self, user_id: str, movie_id: MovieId) -> None:
        user = _require_user(user_id)
        await self._require_movie(movie_id)
        await self.catalog.add_history(user, movie_id, self._clock())
        logger.info("History added: user=%s movie=%s", user, movie_id)

    async def history(self, user_id: str) -> List[HistoryEntry]:
        """Newest first, at most `history_limit` entries."""
        return await self.catalog.list_history(_require_user(user_id), self.history_limit)

    async def remove_from_history(self, user_id: str, movie_id: MovieId) -> None:
        user = _require_user(user_id)
        await self.catalog.delete_history(user, movie_id)
        logger.info("History deleted: user=%s movie=%s", user, movie_id)

    # ── Saved movies ──────────────────────────────────────

    async def save(self, user_id: str, movie_id: MovieId) -> None:
        user = _require_user(user_id)
        await self._require_movie(movie_id)
        await self.catalog.save_movie(user, movie_id, self._clock())

    async def saved(self, user_id: str) -> List[SavedMovie]:
        return await self.catalog.list_saved(_require_user(user_id))

    # ── Activity log ──────────────────────────────────────

    async def log_event(
        self,
        kind: EventKind,
        movie_id: MovieId,
        *,
        user_id: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> ActivityEvent:
        event = ActivityEvent(
            kind=kind,
            movie_id=movie_id,
            user_id=(user_id or "").strip() or ANONYMOUS,
            platform=platform,
            created_at=self._clock(),
        )
        await self.catalog.record_event(event)
        logger.info(
            "%s event recorded: user=%s movie=%s platform=%s",
            kind, event.user_id, movie_id, platform,
        )
        return event
