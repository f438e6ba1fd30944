"""
MoodReel — Offline mood-tag backfill

Fills the `mood` column for catalog movies that have none, by running
each movie's title and overview through the single-mode classifier.

Run with:  python -m moodreel.backfill --limit 100

Rate limits are handled here, not in the request path: a 429/503 from
the provider is retried after a fixed pause, a few times at most.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from moodreel.agents.classifier import MoodClassifier
from moodreel.catalog import MovieCatalog, create_catalog
from moodreel.clients import create_transport
from moodreel.config import settings
from moodreel.errors import MoodReelError, ProviderError
from moodreel.models import CatalogMovie

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_DELAY_SECONDS = 5.0
MAX_RETRIES = 3
PAUSE_BETWEEN_MOVIES = 0.25


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    retries: int = MAX_RETRIES,
    delay: float = RETRY_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `call`, retrying only on rate-limit / unavailable provider errors."""
    for attempt in range(1, retries + 1):
        try:
            return await call()
        except ProviderError as exc:
            if not exc.is_retryable or attempt == retries:
                raise
            logger.warning(
                "Provider busy (HTTP %s), attempt %d/%d – retrying in %.1fs",
                exc.status, attempt, retries, delay,
            )
            await sleep(delay)
    raise RuntimeError("retry loop exited without a result")  # unreachable


def describe_movie(movie: CatalogMovie) -> str:
    parts = [f"{movie.title} ({movie.year})" if movie.year else movie.title]
    if movie.genre:
        parts.append("Genre: " + ", ".join(movie.genre))
    if movie.movie_overview:
        parts.append(movie.movie_overview)
    return "\n".join(parts)


@dataclass
class BackfillSummary:
    tagged: int = 0
    skipped: int = 0
    failed: int = 0


async def backfill_moods(
    catalog: MovieCatalog,
    classifier: MoodClassifier,
    *,
    limit: int = 100,
    pause: float = PAUSE_BETWEEN_MOVIES,
    retry_delay: float = RETRY_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> BackfillSummary:
    """Classify and tag every untagged movie (up to `limit`)."""
    summary = BackfillSummary()
    movies = await catalog.list_untagged(limit)
    logger.info("Backfilling moods for %d movie(s)", len(movies))

    for position, movie in enumerate(movies):
        if position:
            await sleep(pause)
        text = describe_movie(movie)
        try:
            analysis = await call_with_retry(
                lambda: classifier.classify(text, "single"), delay=retry_delay, sleep=sleep,
            )
        except MoodReelError as exc:
            logger.error("  ✗ %s: %s", movie.title, exc)
            summary.failed += 1
            continue

        if not analysis.mood_tags:
            logger.warning("  – %s: no usable tags", movie.title)
            summary.skipped += 1
            continue

        await catalog.update_mood(movie.id, analysis.mood_tags)
        logger.info("  ✓ %s → %s", movie.title, analysis.mood_tags)
        summary.tagged += 1

    logger.info(
        "Backfill done: %d tagged, %d skipped, %d failed",
        summary.tagged, summary.skipped, summary.failed,
    )
    return summary


async def _main(limit: int, pause: float, retry_delay: float) -> BackfillSummary:
    transport = create_transport(settings)
    catalog = create_catalog(settings)
    try:
        return await backfill_moods(
            catalog, MoodClassifier(transport), limit=limit, pause=pause, retry_delay=retry_delay,
        )
    finally:
        await transport.aclose()
        await catalog.aclose()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Fill missing mood tags in the movie catalog.")
    parser.add_argument("--limit", type=int, default=100, help="max movies to tag")
    parser.add_argument("--delay", type=float, default=PAUSE_BETWEEN_MOVIES, help="pause between movies (s)")
    parser.add_argument("--retry-delay", type=float, default=RETRY_DELAY_SECONDS, help="wait after 429/503 (s)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    summary = asyncio.run(_main(args.limit, args.delay, args.retry_delay))
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
