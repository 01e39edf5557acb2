"""
Application configuration loader and it handles:
- Environment variables
- Provider credentials and model names
- Request limits and experiment flags
- Tracing, auth and database configuration

And, the main purpose:
Central place for system configuration.
"""


from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./caseboard.db"
    LOG_LEVEL: str = "INFO"

    # Providers
    AI_PROVIDER_MODE: str = "anthropic"  # anthropic | openai | ab
    AI_OPENAI_PERCENT: int = 50
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com"
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"

    # Empty means "use the hardcoded default" (see llm.router)
    ANTHROPIC_SIMPLE_MODEL: str = ""
    ANTHROPIC_COMPLEX_MODEL: str = ""
    OPENAI_SIMPLE_MODEL: str = ""
    OPENAI_COMPLEX_MODEL: str = ""

    LLM_MAX_TOKENS: int = 4096
    LLM_TIMEOUT_SECONDS: float = 40.0

    # Request limits
    MAX_PROMPT_LENGTH: int = 500
    MAX_BOARD_STATE_OBJECTS: int = 100
    AI_ALLOW_EXPERIMENT_OVERRIDES: bool = False

    CLASSIFIER_PROMPT_CACHE_ENABLED: bool = True

    # Tracing
    TRACING_ENABLED: bool = False
    TRACING_PROJECT: str = "caseboard-dev"
    TRACE_FLUSH_TIMEOUT_MS: int = 900

    # Auth
    AUTH_TOKEN_SECRET: str = ""
    AUTH_TOKEN_TTL_SECONDS: int = 3600

    # Server-side benchmark trigger
    BENCHMARK_RUN_SECRET: str = ""
    BENCHMARK_USER_ID: str = "benchmark-runner"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
