from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent
RULES_DIR = BASE_DIR / "rules"


class Settings(BaseSettings):
    # --- app ---
    app_name: str = "ThreatLens Security Event Platform"
    debug: bool = False

    # --- store ---
    capacity: int = 1000
    seed_events: int = 50
    seed_spread_days: float = 7.0

    # --- enrichment ---
    embedding_dim: int = 1536
    enrichment_timeout: float = 10.0  # seconds per provider call
    enrichment_workers: int = 4
    openai_api_key: str | None = None
    openai_model: str = "gpt-4"
    embedding_model: str = "text-embedding-ada-002"
    fallback_analyses_file: str = str(RULES_DIR / "fallback_analyses.yaml")

    # --- generation ---
    generation_interval: float = 5.0  # base seconds between generated events
    auto_generate: bool = False

    # --- server ---
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_prefix": "THREATLENS_"}


settings = Settings()
