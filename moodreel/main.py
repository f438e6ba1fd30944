"""
MoodReel — FastAPI Application

REST endpoints for the mood flows (plus an SSE variant of party mode),
recommendations, and the per-user history, saves and activity log.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from moodreel.agents.scorer import merge_scores
from moodreel.catalog import create_catalog
from moodreel.clients import create_transport
from moodreel.config import settings
from moodreel.errors import MoodReelError
from moodreel.library import UserLibrary
from moodreel.models import (
    CharacterMatchResponse,
    DecideLogRequest,
    DetailLogRequest,
    EmotionalJourneyResponse,
    HistoryEntry,
    MoodPicksResponse,
    MoodTextRequest,
    MovieRef,
    PartyMoodRequest,
    PartyMoodResponse,
    RecommendationsResponse,
    RelevanceScore,
    SavedMovie,
    SuccessResponse,
)
from moodreel.pipeline import MoodPipeline, validate_party

logger = logging.getLogger(__name__)


# ── Lifespan: startup/shutdown ────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down shared resources."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    logger.info("MoodReel starting up…")
    logger.info("   LLM provider: %s", settings.llm_provider)
    logger.info("   Catalog: %s", settings.catalog_backend)

    transport = create_transport(settings)
    catalog = create_catalog(settings)
    app.state.pipeline = MoodPipeline.from_settings(settings, transport, catalog)
    app.state.library = UserLibrary(catalog)

    yield  # app runs here

    logger.info("MoodReel shutting down…")
    await transport.aclose()
    await catalog.aclose()


# ── App instance ──────────────────────────────────────────

app = FastAPI(
    title="MoodReel",
    version="1.0.0",
    description="Mood-driven movie discovery API",
    lifespan=lifespan,
)

# CORS for frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline(request: Request) -> MoodPipeline:
    return request.app.state.pipeline


def get_library(request: Request) -> UserLibrary:
    return request.app.state.library


# ── Logging middleware ────────────────────────────────────


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - t0) * 1000
    logger.info(
        "%s %s → %d (%.0f ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed,
    )
    return response


# ── Error mapping ─────────────────────────────────────────


def _error_body(exc: MoodReelError) -> dict:
    return {"detail": exc.message, "error": type(exc).__name__}


@app.exception_handler(MoodReelError)
async def mood_error_handler(request: Request, exc: MoodReelError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


# ── Health endpoint ───────────────────────────────────────


@app.get("/api/health")
async def health(pipeline: MoodPipeline = Depends(get_pipeline)):
    """Health check — reports LLM provider and catalog status."""
    status = {"status": "ok", "llm": "unknown", "catalog": "unknown"}
    try:
        status["llm_info"] = await pipeline.classifier.transport.check_health()
        status["llm"] = "ok"
    except Exception as exc:
        status["llm"] = f"error: {exc}"

    try:
        status["catalog_info"] = await pipeline.catalog.check_health()
        status["catalog"] = "ok"
    except Exception as exc:
        status["catalog"] = f"error: {exc}"

    ok = status["llm"] == "ok" and status["catalog"] == "ok"
    status["status"] = "ok" if ok else "degraded"
    return status


# ── Mood endpoints ────────────────────────────────────────


@app.post("/api/analyze-emotional-journey", response_model=EmotionalJourneyResponse)
async def analyze_emotional_journey(
    body: MoodTextRequest, pipeline: MoodPipeline = Depends(get_pipeline),
):
    """Three top-rated mood matches in release → reflect → rebuild order."""
    return await pipeline.emotional_journey(body.mood_text)


@app.post("/api/analyze-party-mood", response_model=PartyMoodResponse)
async def analyze_party_mood(
    body: PartyMoodRequest, pipeline: MoodPipeline = Depends(get_pipeline),
):
    """Blend 2–4 members' moods and score each matching movie for the group."""
    return await pipeline.party_mood(body.members)


@app.post("/api/analyze-party-mood/stream")
async def analyze_party_mood_stream(
    body: PartyMoodRequest, pipeline: MoodPipeline = Depends(get_pipeline),
):
    """
    Party mode over Server-Sent Events.

    Sends the group analysis first, then one `movie` event per scored
    candidate as it completes, then the merged result in `done`.
    """
    validate_party(body.members)

    async def event_generator() -> AsyncIterator[dict]:
        yield {"event": "status", "data": json.dumps({"phase": "analyzing"})}
        try:
            mood_context, analysis, movies = await pipeline.prepare_party(body.members)
        except MoodReelError as exc:
            yield {"event": "error", "data": json.dumps(_error_body(exc), ensure_ascii=False)}
            return

        yield {"event": "analysis", "data": analysis.model_dump_json()}
        yield {"event": "status", "data": json.dumps({"phase": "scoring", "candidates": len(movies)})}

        scores: List[Optional[RelevanceScore]] = [None] * len(movies)
        async for index, score in pipeline.scorer.iter_movie_scores(mood_context, movies):
            scores[index] = score
            yield {
                "event": "movie",
                "data": json.dumps(
                    {
                        "index": index,
                        "movie_id": movies[index].id,
                        "analysis": score.model_dump() if score else None,
                    },
                    ensure_ascii=False,
                ),
            }

        result = PartyMoodResponse(recommendations=merge_scores(movies, scores), analysis=analysis)
        yield {"event": "done", "data": result.model_dump_json()}

    return EventSourceResponse(event_generator())


@app.post("/api/analyze-character-match", response_model=CharacterMatchResponse)
async def analyze_character_match(
    body: MoodTextRequest, pipeline: MoodPipeline = Depends(get_pipeline),
):
    """The movie whose main character best fits the user's description."""
    return await pipeline.character_match(body.mood_text)


@app.post("/api/mood-picks", response_model=MoodPicksResponse)
async def mood_picks(body: MoodTextRequest, pipeline: MoodPipeline = Depends(get_pipeline)):
    """Top-rated movies sharing any of the analysed mood tags."""
    return await pipeline.mood_picks(body.mood_text)


# ── Recommendations ───────────────────────────────────────


# Declared before /{user_id} so "random" is not taken for a user id
@app.get("/api/recommendations/random", response_model=RecommendationsResponse)
async def random_recommendations(pipeline: MoodPipeline = Depends(get_pipeline)):
    """Random picks for signed-out visitors."""
    return await pipeline.random_picks()


@app.get("/api/recommendations/{user_id}", response_model=RecommendationsResponse)
async def personal_recommendations(
    user_id: str, pipeline: MoodPipeline = Depends(get_pipeline),
):
    """Unseen movies that share moods with the user's recent history."""
    return await pipeline.personal_recommendations(user_id)


# ── User library ──────────────────────────────────────────


@app.get("/api/users/{user_id}/history", response_model=List[HistoryEntry])
async def get_history(user_id: str, library: UserLibrary = Depends(get_library)):
    return await library.history(user_id)


@app.post("/api/users/{user_id}/history", response_model=SuccessResponse)
async def add_history(
    user_id: str, body: MovieRef, library: UserLibrary = Depends(get_library),
):
    """Record that the user watched a movie (feeds personal recommendations)."""
    await library.add_to_history(user_id, body.movie_id)
    return SuccessResponse()


@app.delete("/api/users/{user_id}/history/{movie_id}", response_model=SuccessResponse)
async def delete_history(
    user_id: str, movie_id: str, library: UserLibrary = Depends(get_library),
):
    await library.remove_from_history(user_id, movie_id)
    return SuccessResponse()


@app.get("/api/users/{user_id}/saved", response_model=List[SavedMovie])
async def get_saved(user_id: str, library: UserLibrary = Depends(get_library)):
    return await library.saved(user_id)


@app.post("/api/users/{user_id}/saved", response_model=SuccessResponse)
async def save_movie(
    user_id: str, body: MovieRef, library: UserLibrary = Depends(get_library),
):
    await library.save(user_id, body.movie_id)
    return SuccessResponse()


# ── Activity log ──────────────────────────────────────────


@app.post("/api/log/decide", response_model=SuccessResponse)
async def log_decide(body: DecideLogRequest, library: UserLibrary = Depends(get_library)):
    """The user chose a platform to watch a movie on."""
    await library.log_event("decide", body.movie_id, user_id=body.user_id, platform=body.platform)
    return SuccessResponse()


@app.post("/api/log/detail", response_model=SuccessResponse)
async def log_detail(body: DetailLogRequest, library: UserLibrary = Depends(get_library)):
    """The user opened a movie's detail view."""
    await library.log_event("detail", body.movie_id, user_id=body.user_id)
    return SuccessResponse()
