"""
MoodReel — Movie Catalog

Design patterns:
  - Repository: the pipeline only sees the MovieCatalog protocol
  - Strategy: in-memory or PostgREST backend chosen from settings

The in-memory backend is used for local runs (seeded from a JSON file)
and tests. Ties on rating keep catalog insertion order.
"""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Collection, Dict, Iterable, List, Optional, Protocol, Tuple

from moodreel.config import Settings
from moodreel.models import ActivityEvent, CatalogMovie, HistoryEntry, MovieId, SavedMovie

logger = logging.getLogger(__name__)


class MovieCatalog(Protocol):
    async def find_by_mood_overlap(
        self,
        tags: Collection[str],
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
    ) -> List[CatalogMovie]: ...

    async def get_movie(self, movie_id: MovieId) -> Optional[CatalogMovie]: ...

    async def list_movies(
        self,
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
        order_by_rating: bool = False,
    ) -> List[CatalogMovie]: ...

    async def watched_movie_ids(self, user_id: str) -> List[MovieId]: ...

    async def recent_history_moods(self, user_id: str, limit: int = 5) -> List[str]: ...

    async def add_history(self, user_id: str, movie_id: MovieId, watched_at: str) -> None: ...

    async def list_history(self, user_id: str, limit: int = 50) -> List[HistoryEntry]: ...

    async def delete_history(self, user_id: str, movie_id: MovieId) -> None: ...

    async def save_movie(self, user_id: str, movie_id: MovieId, saved_at: str) -> None: ...

    async def list_saved(self, user_id: str) -> List[SavedMovie]: ...

    async def record_event(self, event: ActivityEvent) -> None: ...

    async def list_untagged(self, limit: int) -> List[CatalogMovie]: ...

    async def update_mood(self, movie_id: MovieId, tags: List[str]) -> None: ...

    async def check_health(self) -> Dict[str, Any]: ...

    async def aclose(self) -> None: ...


def _id_key(movie_id: MovieId) -> str:
    return str(movie_id)


class InMemoryCatalog:
    """A list of movies plus per-user watch history and saves, held in process."""

    def __init__(
        self,
        movies: Iterable[CatalogMovie] = (),
        history: Optional[Dict[str, List[Tuple[MovieId, str]]]] = None,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._movies: List[CatalogMovie] = list(movies)
        # user_id -> [(movie_id, watched_at ISO string)]
        self._history: Dict[str, List[Tuple[MovieId, str]]] = dict(history or {})
        # user_id -> {movie key: SavedMovie}; re-saving only refreshes the timestamp
        self._saved: Dict[str, Dict[str, SavedMovie]] = {}
        self.events: List[ActivityEvent] = []
        self._rng = rng or random.Random()

    @classmethod
    def from_file(cls, path: str) -> "InMemoryCatalog":
        """Load `{"movies": [...], "history": {user: [{movie_id, watched_at}]}}` or a bare list."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(raw, list):
            raw = {"movies": raw}
        movies = [CatalogMovie(**row) for row in raw.get("movies", [])]
        history = {
            user: [(entry["movie_id"], entry.get("watched_at", "")) for entry in entries]
            for user, entries in (raw.get("history") or {}).items()
        }
        logger.info("Loaded %d movies from %s", len(movies), path)
        return cls(movies, history)

    def _visible(self, exclude_ids: Optional[Collection[MovieId]]) -> List[CatalogMovie]:
        if not exclude_ids:
            return list(self._movies)
        excluded = {_id_key(i) for i in exclude_ids}
        return [m for m in self._movies if _id_key(m.id) not in excluded]

    async def find_by_mood_overlap(
        self,
        tags: Collection[str],
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
    ) -> List[CatalogMovie]:
        wanted = set(tags)
        rows = [m for m in self._visible(exclude_ids) if wanted.intersection(m.mood)]
        # sorted() is stable: equal ratings keep insertion order
        rows = sorted(rows, key=lambda m: m.rating, reverse=True)
        return [m.model_copy(deep=True) for m in rows[:limit]]

    async def get_movie(self, movie_id: MovieId) -> Optional[CatalogMovie]:
        key = _id_key(movie_id)
        for movie in self._movies:
            if _id_key(movie.id) == key:
                return movie.model_copy(deep=True)
        return None

    async def list_movies(
        self,
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
        order_by_rating: bool = False,
    ) -> List[CatalogMovie]:
        rows = self._visible(exclude_ids)
        if order_by_rating:
            rows = sorted(rows, key=lambda m: m.rating, reverse=True)[:limit]
        else:
            rows = self._rng.sample(rows, min(limit, len(rows)))
        return [m.model_copy(deep=True) for m in rows]

    def _history_newest_first(self, user_id: str) -> List[Tuple[MovieId, str]]:
        return sorted(self._history.get(user_id, []), key=lambda e: e[1], reverse=True)

    async def watched_movie_ids(self, user_id: str) -> List[MovieId]:
        return [movie_id for movie_id, _ in self._history.get(user_id, [])]

    async def recent_history_moods(self, user_id: str, limit: int = 5) -> List[str]:
        moods: List[str] = []
        for movie_id, _ in self._history_newest_first(user_id)[:limit]:
            movie = await self.get_movie(movie_id)
            for tag in movie.mood if movie else []:
                if tag and tag not in moods:
                    moods.append(tag)
        return moods

    async def list_untagged(self, limit: int) -> List[CatalogMovie]:
        return [m.model_copy(deep=True) for m in self._movies if not m.mood][:limit]

    async def update_mood(self, movie_id: MovieId, tags: List[str]) -> None:
        key = _id_key(movie_id)
        for movie in self._movies:
            if _id_key(movie.id) == key:
                movie.mood = list(tags)
                return
        raise KeyError(movie_id)

    async def add_history(self, user_id: str, movie_id: MovieId, watched_at: str) -> None:
        self._history.setdefault(user_id, []).append((movie_id, watched_at))

    async def list_history(self, user_id: str, limit: int = 50) -> List[HistoryEntry]:
        return [
            HistoryEntry(movie_id=movie_id, watched_at=watched_at, movie=await self.get_movie(movie_id))
            for movie_id, watched_at in self._history_newest_first(user_id)[:limit]
        ]

    async def delete_history(self, user_id: str, movie_id: MovieId) -> None:
        key = _id_key(movie_id)
        entries = self._history.get(user_id, [])
        self._history[user_id] = [e for e in entries if _id_key(e[0]) != key]

    async def save_movie(self, user_id: str, movie_id: MovieId, saved_at: str) -> None:
        saved = self._saved.setdefault(user_id, {})
        saved[_id_key(movie_id)] = SavedMovie(movie_id=movie_id, saved_at=saved_at)

    async def list_saved(self, user_id: str) -> List[SavedMovie]:
        saved = self._saved.get(user_id, {}).values()
        return sorted(saved, key=lambda s: s.saved_at, reverse=True)

    async def record_event(self, event: ActivityEvent) -> None:
        self.events.append(event)

    async def check_health(self) -> Dict[str, Any]:
        return {"backend": "memory", "movies": len(self._movies)}

    async def aclose(self) -> None:
        return None


def create_catalog(settings: Settings) -> MovieCatalog:
    """Build the catalog backend selected by `settings.catalog_backend`."""
    if settings.catalog_backend == "postgrest":
        from moodreel.clients.supabase import PostgrestCatalog

        return PostgrestCatalog(
            base_url=settings.supabase_url.rstrip("/") + "/rest/v1",
            headers=settings.supabase_headers,
            movies_table=settings.movies_table,
            history_table=settings.history_table,
            saved_table=settings.saved_table,
            events_table=settings.events_table,
        )
    if settings.catalog_seed_path:
        return InMemoryCatalog.from_file(settings.catalog_seed_path)
    logger.warning("No catalog seed configured, starting with an empty catalog")
    return InMemoryCatalog()
