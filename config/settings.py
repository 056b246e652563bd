"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., OPENAI_API_KEY env var → Settings.OPENAI_API_KEY)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

Every module imports `settings` from here instead of hardcoding values.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── PostgreSQL ──────────────────────────────────────────────
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "scoring"
    POSTGRES_PASSWORD: str = "scoring"
    POSTGRES_DB: str = "scoring"

    # ── Redis ───────────────────────────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # ── AI text-generation service ──────────────────────────────
    OPENAI_API_KEY: str = ""           # empty → every scoring call is a ConfigurationError
    OPENAI_BASE_URL: str = ""          # optional OpenAI-compatible endpoint
    SCORING_MODEL: str = "gpt-4.1-mini"
    SCORING_MAX_OUTPUT_TOKENS: int = 900
    REPAIR_MAX_OUTPUT_TOKENS: int = 900
    AI_REQUEST_TIMEOUT: float = 60.0   # seconds per AI call

    # ── Batch ───────────────────────────────────────────────────
    DEFAULT_TAKE: int = 3              # tasks claimed per run when the caller doesn't say
    MAX_TAKE: int = 10
    MIN_WINDOW_SIZE: int = 10
    MAX_WINDOW_SIZE: int = 100
    MIN_RECORDS: int = 5               # fewer conversations than this → InsufficientData
    EXCERPT_CHARS: int = 1200          # transcript prefix used when no report exists
    MAX_AGENTS_PER_JOB: int = 5000
    STORE_READ_TIMEOUT: float = 15.0   # seconds for one conversation window read
    TASK_TIMEOUT: float = 150.0        # seconds for one task's scoring attempt (incl. repair)
    STALE_TASK_SECONDS: int = 1800     # running longer than this → left behind by a crashed run
    FAILED_SAMPLE_SIZE: int = 5
    ERROR_MAX_CHARS: int = 300

    # ── Usage ───────────────────────────────────────────────────
    DAILY_SCORING_LIMIT: int = 50      # job creations + single-agent scorings per caller per UTC day

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        """Async connection string (uses asyncpg driver)."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import this everywhere
settings = Settings()
