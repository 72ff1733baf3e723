"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    geoprospector_env: str = "development"
    geoprospector_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Model routing (one model per call profile)
    model_fast: str = "claude-haiku-4-5-20251001"
    model_default: str = "claude-sonnet-4-5-20250929"
    model_deep: str = "claude-sonnet-4-5-20250929"
    model_structured: str = "claude-haiku-4-5-20251001"

    max_tokens: int = 8192
    deep_thinking_budget: int = 10000
    web_search_max_uses: int = 5

    # Run pacing: delay before each staged status after UPLOADING
    stage_delays_ms: list[int] = [1000, 1500, 1500, 1500]
    chart_point_count: int = 20

    # Boundary import
    csv_max_bytes: int = 5 * 1024 * 1024
    max_boundary_vertices: int = 1000

    snapshot_tile_zoom: int = 14

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
