from functools import lru_cache
from pydantic import Field, SecretStr, AnyHttpUrl
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file (only once at import time)
load_dotenv()


class Settings(BaseSettings):
    # Application
    app_name: str = Field(default="Salon Dialog Engine")
    app_env: str = Field(default="development")
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # Redis session store
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="booking:session:")
    redis_operation_timeout_seconds: float = Field(default=0.1)

    # External collaborators
    booking_api_base_url: AnyHttpUrl | str = Field(default="http://localhost:3000/api")
    booking_api_token: SecretStr | None = Field(default=None)
    collaborator_timeout_seconds: float = Field(default=0.4)

    # OpenAI (language / intent fallback)
    openai_api_key: SecretStr | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")

    # Intent routing
    intent_confidence_threshold: float = Field(default=0.70)
    default_language: str = Field(default="en")

    # Session lifetime
    session_ttl_seconds: int = Field(default=1800)
    session_extend_seconds: int = Field(default=900)
    session_absolute_ceiling_seconds: int = Field(default=3600)
    session_choice_log_cap: int = Field(default=10)

    # Result paging
    max_results_per_page: int = Field(default=5)
    max_see_more: int = Field(default=3)
    alternative_search_days: int = Field(default=7)

    # Alternative slot scoring
    score_window_1h_minutes: int = Field(default=60)
    score_window_2h_minutes: int = Field(default=120)
    score_window_3h_minutes: int = Field(default=180)
    score_within_1h: int = Field(default=500)
    score_within_2h: int = Field(default=300)
    score_within_3h: int = Field(default=100)
    staff_match_bonus: int = Field(default=50)

    # Popular times
    popular_times_cache_ttl_seconds: int = Field(default=3600)
    popular_times_lookback_days: int = Field(default=90)
    popular_times_min_count: int = Field(default=3)
    popular_times_min_total_bookings: int = Field(default=10)
    popular_times_top_n: int = Field(default=5)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    # Convenience uppercase aliases to match docs/examples
    @property
    def REDIS_URL(self) -> str:
        return self.redis_url

    @property
    def LOG_LEVEL(self) -> str:
        return self.log_level

    @property
    def BOOKING_API_URL(self) -> str:
        return str(self.booking_api_base_url).rstrip("/")

    @property
    def BOOKING_API_TOKEN(self) -> str | None:
        return None if self.booking_api_token is None else self.booking_api_token.get_secret_value()

    @property
    def OPENAI_API_KEY(self) -> str | None:
        return None if self.openai_api_key is None else self.openai_api_key.get_secret_value()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    if settings.session_ttl_seconds > settings.session_absolute_ceiling_seconds:
        settings.session_ttl_seconds = settings.session_absolute_ceiling_seconds
    return settings


# Expose a singleton-like instance for simple imports: from salon_dialog.config import settings
settings = get_settings()
