from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "PageScope"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    PORT: int = 3010

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Browser
    BROWSER_HEADLESS: bool = True
    BROWSER_CHANNEL: str = "chrome"  # installed channel tried first; "" = bundled only
    BROWSER_LOCALE: str = "en-US"
    BROWSER_TIMEZONE: str = "Europe/Istanbul"
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    # Navigation
    NAV_TIMEOUT_MS: int = 30000
    NAV_IDLE_TIMEOUT_MS: int = 8000
    NAV_MAX_ATTEMPTS: int = 3
    NAV_BACKOFF_MS: int = 3000  # multiplied by the attempt number
    NAV_JITTER_MS: int = 2000

    # Bot challenge handling
    CHALLENGE_DEADLINE_MS: int = 30000
    CHALLENGE_POLL_MS: int = 1500
    CHALLENGE_MAX_HTML: int = 60000

    # Scraping
    DEFAULT_WAIT_FOR: int = 3000  # ms
    MAX_WAIT_FOR: int = 60000  # ms
    RENDER_WAIT_CAP_MS: int = 5000
    OVERLAY_SETTLE_MS: int = 500
    SCRAPE_TIMEOUT: int = 240  # seconds, wall clock for one scrape
    BATCH_MAX_URLS: int = 10

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
