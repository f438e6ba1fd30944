"""
MoodReel — PostgREST Catalog Client

Design patterns:
  - Repository: implements the MovieCatalog protocol over Supabase's REST API
  - Retry with Backoff: waits on 429 using Retry-After or 2**attempt
  - Semaphore: rate-limited concurrent requests (max 8)

Async HTTP client for the `movies`, `user_history`, `saved_movies` and
`activity_log` tables. Mood overlap maps to PostgREST's `ov` operator;
equal ratings are ordered by ascending id so repeated queries return the
same sequence.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Collection, Dict, List, Optional

import httpx

from moodreel.models import ActivityEvent, CatalogMovie, HistoryEntry, MovieId, SavedMovie

logger = logging.getLogger(__name__)

_MOVIE_COLUMNS = "id,title,year,genre,country,movie_overview,poster_url,youtube_link,rating,mood"
_MAX_RETRIES = 3


def _pg_list(values: Collection[Any]) -> str:
    """Render values as a quoted PostgREST list body: "a","b"."""
    return ",".join('"{}"'.format(str(v).replace('"', '\\"')) for v in values)


def overlap_filter(tags: Collection[str]) -> str:
    return "ov.{" + _pg_list(tags) + "}"


def not_in_filter(ids: Collection[MovieId]) -> str:
    return "not.in.(" + _pg_list(ids) + ")"


def _retry_after(resp: httpx.Response, *, default: float) -> float:
    """Seconds from a numeric Retry-After header; HTTP-date values fall back to `default`."""
    try:
        return max(0.0, float(resp.headers.get("Retry-After", default)))
    except ValueError:
        return default


class PostgrestCatalog:
    """MovieCatalog backed by a Supabase / PostgREST endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        headers: Dict[str, str],
        movies_table: str = "movies",
        history_table: str = "user_history",
        saved_table: str = "saved_movies",
        events_table: str = "activity_log",
        client: Optional[httpx.AsyncClient] = None,
        max_concurrency: int = 8,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._movies = movies_table
        self._history = history_table
        self._saved = saved_table
        self._events = events_table
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0),
        )
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._sleep = sleep

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Execute a request against PostgREST, backing off on 429 and transport errors.

        The semaphore only guards the request itself; back-off waits happen
        outside it so other callers keep their slots.
        """
        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                async with self._semaphore:
                    resp = await self._client.request(
                        method, path, params=params, json=json, headers=headers,
                    )
            except httpx.HTTPError as exc:
                if attempt == _MAX_RETRIES:
                    raise
                wait = 2 ** attempt
                logger.warning(
                    "Catalog %s %s failed (attempt %d/%d): %s, retrying in %ds",
                    method, path, attempt, _MAX_RETRIES, exc, wait,
                )
                await self._sleep(wait)
                continue

            if resp.status_code == 429 and attempt < _MAX_RETRIES:
                wait = _retry_after(resp, default=2 ** attempt)
                logger.warning("Catalog rate-limited on %s, waiting %.1fs", path, wait)
                await self._sleep(wait)
                continue

            resp.raise_for_status()
            return resp.json() if resp.content else None

        raise RuntimeError("Catalog request failed after retries")  # unreachable

    async def _select_movies(self, params: Dict[str, Any]) -> List[CatalogMovie]:
        rows = await self._request("GET", f"/{self._movies}", {"select": _MOVIE_COLUMNS, **params})
        return [CatalogMovie(**row) for row in rows or []]

    # ── MovieCatalog ──────────────────────────────────────

    async def find_by_mood_overlap(
        self,
        tags: Collection[str],
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
    ) -> List[CatalogMovie]:
        params: Dict[str, Any] = {
            "mood": overlap_filter(tags),
            "order": "rating.desc,id.asc",
            "limit": limit,
        }
        if exclude_ids:
            params["id"] = not_in_filter(exclude_ids)
        return await self._select_movies(params)

    async def get_movie(self, movie_id: MovieId) -> Optional[CatalogMovie]:
        rows = await self._select_movies({"id": f"eq.{movie_id}", "limit": 1})
        return rows[0] if rows else None

    async def list_movies(
        self,
        *,
        exclude_ids: Optional[Collection[MovieId]] = None,
        limit: int,
        order_by_rating: bool = False,
    ) -> List[CatalogMovie]:
        params: Dict[str, Any] = {"limit": limit}
        if order_by_rating:
            params["order"] = "rating.desc,id.asc"
        if exclude_ids:
            params["id"] = not_in_filter(exclude_ids)
        return await self._select_movies(params)

    async def watched_movie_ids(self, user_id: str) -> List[MovieId]:
        rows = await self._request(
            "GET", f"/{self._history}", {"select": "movie_id", "user_id": f"eq.{user_id}"},
        )
        return [row["movie_id"] for row in rows or []]

    async def recent_history_moods(self, user_id: str, limit: int = 5) -> List[str]:
        rows = await self._request(
            "GET",
            f"/{self._history}",
            {
                "select": f"movie_id,{self._movies}(id,mood)",
                "user_id": f"eq.{user_id}",
                "order": "watched_at.desc",
                "limit": limit,
            },
        )
        moods: List[str] = []
        for row in rows or []:
            movie = row.get(self._movies) or {}
            for tag in movie.get("mood") or []:
                if tag and tag not in moods:
                    moods.append(tag)
        return moods

    async def add_history(self, user_id: str, movie_id: MovieId, watched_at: str) -> None:
        await self._request(
            "POST",
            f"/{self._history}",
            json={"user_id": user_id, "movie_id": movie_id, "watched_at": watched_at},
            headers={"Prefer": "return=minimal"},
        )

    async def list_history(self, user_id: str, limit: int = 50) -> List[HistoryEntry]:
        rows = await self._request(
            "GET",
            f"/{self._history}",
            {
                "select": f"movie_id,watched_at,{self._movies}({_MOVIE_COLUMNS})",
                "user_id": f"eq.{user_id}",
                "order": "watched_at.desc",
                "limit": limit,
            },
        )
        entries = []
        for row in rows or []:
            movie = row.get(self._movies)
            entries.append(HistoryEntry(
                movie_id=row["movie_id"],
                watched_at=row["watched_at"],
                movie=CatalogMovie(**movie) if movie else None,
            ))
        return entries

    async def delete_history(self, user_id: str, movie_id: MovieId) -> None:
        await self._request(
            "DELETE",
            f"/{self._history}",
            {"user_id": f"eq.{user_id}", "movie_id": f"eq.{movie_id}"},
            headers={"Prefer": "return=minimal"},
        )

    async def save_movie(self, user_id: str, movie_id: MovieId, saved_at: str) -> None:
        # Upsert on (user_id, movie_id): saving twice keeps one row
        await self._request(
            "POST",
            f"/{self._saved}",
            {"on_conflict": "user_id,movie_id"},
            json={"user_id": user_id, "movie_id": movie_id, "saved_at": saved_at},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def list_saved(self, user_id: str) -> List[SavedMovie]:
        rows = await self._request(
            "GET",
            f"/{self._saved}",
            {"select": "movie_id,saved_at", "user_id": f"eq.{user_id}", "order": "saved_at.desc"},
        )
        return [SavedMovie(**row) for row in rows or []]

    async def record_event(self, event: ActivityEvent) -> None:
        await self._request(
            "POST",
            f"/{self._events}",
            json=event.model_dump(),
            headers={"Prefer": "return=minimal"},
        )

    async def list_untagged(self, limit: int) -> List[CatalogMovie]:
        return await self._select_movies(
            {"or": "(mood.is.null,mood.eq.{})", "order": "id.asc", "limit": limit},
        )

    async def update_mood(self, movie_id: MovieId, tags: List[str]) -> None:
        await self._request(
            "PATCH",
            f"/{self._movies}",
            {"id": f"eq.{movie_id}"},
            json={"mood": tags},
            headers={"Prefer": "return=minimal"},
        )

    async def check_health(self) -> Dict[str, Any]:
        await self._request("GET", f"/{self._movies}", {"select": "id", "limit": 1})
        return {"backend": "postgrest"}

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
