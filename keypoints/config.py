from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

from keypoints.pipeline_config import ScorerStrategy


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # Scoring backend
    scorer_model_path: str = "models/summarizer.onnx"
    execution_providers: list[str] = ["CUDAExecutionProvider", "CPUExecutionProvider"]
    scorer_strategy: ScorerStrategy = ScorerStrategy.NEURAL

    # Encoder limits (must match the exported model's input shape)
    max_segments: int = 50
    max_words_per_segment: int = 32
    vocab_size: int = 10000

    # Summary
    top_k: int = 5
    latency_budget_ms: float = 50.0
    min_summary_chars: int = 10  # snapshots this short are not worth summarizing

    # Pause detection (milliseconds between utterances)
    short_pause_ms: int = 600
    long_pause_ms: int = 1200

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
