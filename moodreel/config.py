"""
MoodReel — Application Settings

Design patterns:
  - Singleton: single Settings instance shared everywhere
  - Configuration Object: centralizes all env-based config
"""

from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration sourced from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── LLM provider ──────────────────────────────────────
    llm_provider: Literal["clova", "openai"] = "clova"
    clova_api_key: str = ""
    clova_chat_url: str = (
        "https://clovastudio.stream.ntruss.com/testapp/v1/chat-completions/HCX-DASH-001"
    )
    vllm_base_url: str = "http://localhost:8001/v1"
    vllm_model: str = "Qwen3-30B-A3B-Instruct"
    llm_timeout_seconds: Optional[float] = None  # None = no client-side deadline

    # ── Catalog ───────────────────────────────────────────
    catalog_backend: Literal["memory", "postgrest"] = "memory"
    catalog_seed_path: Optional[str] = None
    supabase_url: str = ""
    supabase_service_key: str = ""
    movies_table: str = "movies"
    history_table: str = "user_history"
    saved_table: str = "saved_movies"
    events_table: str = "activity_log"

    # ── Pipeline ──────────────────────────────────────────
    journey_movie_limit: int = 3
    party_movie_limit: int = 2
    character_candidate_limit: int = 10
    recommendation_limit: int = 10
    scoring_concurrency: int = 4
    fallback_policy: Literal["error", "random", "popular"] = "random"

    # ── App ───────────────────────────────────────────────
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"
    app_reload: bool = False

    # ── Derived helpers ───────────────────────────────────
    @property
    def supabase_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.supabase_service_key,
            "Authorization": f"Bearer {self.supabase_service_key}",
            "Accept": "application/json",
        }


# Singleton – import this everywhere
settings = Settings()
