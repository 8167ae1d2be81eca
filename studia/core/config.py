from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "Studia"
    environment: str = "development"  # development, production
    log_level: str = ""  # DEBUG, INFO, WARNING, ERROR, CRITICAL (empty = auto based on environment)
    log_to_file: bool = True  # Enable file logging

    # Database (SQLite for local dev, the backend's PostgreSQL in production)
    database_url: str = "sqlite:///./studia.db"

    # Supabase (auth, object storage)
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    # When set, bearer tokens are verified locally instead of via /auth/v1/user
    supabase_jwt_secret: str = ""
    storage_bucket: str = "study-materials"

    # Google Gemini (primary, multimodal)
    gemini_api_key: str = ""
    gemini_models: str = "gemini-2.0-flash,gemini-2.0-flash-lite,gemini-1.5-flash,gemini-1.5-pro"
    gemini_exam_model: str = "gemini-2.5-flash"

    # Anthropic Claude (secondary, text only)
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-5-20250929"

    # Document parsing service (LlamaParse)
    llama_cloud_api_key: str = ""
    parse_api_url: str = "https://api.cloud.llamaindex.ai/api/parsing"
    parse_poll_interval_seconds: float = 2.0
    parse_max_poll_attempts: int = 30

    # Pipeline limits
    min_extracted_chars: int = 50
    max_prompt_chars: int = 14000
    http_timeout_seconds: float = 120.0
    exam_question_count: int = 50

    # Rate limiting (slowapi limit strings, per client address)
    rate_limit_enabled: bool = True
    analyze_rate_limit: str = "10/minute"
    exam_rate_limit: str = "5/hour"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def gemini_model_list(self) -> list[str]:
        return [m.strip() for m in self.gemini_models.split(",") if m.strip()]


settings = Settings()

if settings.environment == "production" and not settings.supabase_url:
    raise RuntimeError(
        "SUPABASE_URL is not set. The backend cannot verify sessions or "
        "download study materials without it."
    )
