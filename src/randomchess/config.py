"""Centralized application configuration.

All settings are read from environment variables (or a .env.randomchess
file). Everything has a default, so a bare environment runs against a
``stockfish`` binary on PATH with no remote analysis server.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from randomchess.constants import (
    ANALYSIS_TIMEOUT,
    DEFAULT_DEPTH,
    DEFAULT_MULTIPV,
    ENGINE_THREADS,
    MAX_RETRIES,
    SLIGHT_ADVANTAGE,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env.randomchess", env_file_encoding="utf-8",
    )

    # Stockfish
    stockfish_path: str = "stockfish"
    stockfish_hash_mb: int = 64
    engine_threads: int = ENGINE_THREADS
    engine_timeout: float = ANALYSIS_TIMEOUT
    engine_max_retries: int = MAX_RETRIES
    engine_difficulty: str = "max"

    # Remote analysis service (tried before the local engine when set)
    analysis_server_url: str | None = None
    http_timeout: float = 15.0

    # Generation defaults
    default_depth: int = DEFAULT_DEPTH
    default_multipv: int = DEFAULT_MULTIPV
    max_evaluation: int = SLIGHT_ADVANTAGE
    max_attempts: int | None = None

    log_level: str = "INFO"
