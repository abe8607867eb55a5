from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./pricecalendar.db"

    base_url: str = "https://www.booking.com"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"
    # Cookie header copied from the user's browser session ("name=value; ...")
    session_cookies: str = ""
    request_timeout_seconds: float = 30.0

    # Price fetch scheduling
    max_concurrent_fetches: int = 2
    fetch_delay_seconds: float = 0.9
    fetch_stagger_seconds: float = 0.18
    rate_limit_cooldown_seconds: float = 5.0
    max_rate_limit_retries: int = 6
    checkout_window_days: int = 10

    # Hotel detail pipeline
    detail_retry_delay_seconds: float = 1.5
    rendered_capture_enabled: bool = True
    rendered_capture_timeout_seconds: float = 20.0

    max_compare: int = 4
    max_photos: int = 12
    sort_by_price_default: bool = True

    def model_post_init(self, __context):
        if self.max_concurrent_fetches < 1:
            raise ValueError("MAX_CONCURRENT_FETCHES must be at least 1")
        if self.env == "prod" and not self.session_cookies:
            raise ValueError(
                "Production requires SESSION_COOKIES (upstream throttles anonymous requests)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
