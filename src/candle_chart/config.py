"""Settings (pydantic-settings, loaded from env vars)."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Market data provider ---
    PROVIDER_BASE_URL: str = "http://localhost:3000"
    PROVIDER_CANDLES_PATH: str = "/api/tgbot/hyperliquid/candles"
    PROVIDER_API_KEY: str = ""
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_MAX_ATTEMPTS: int = 3
    PROVIDER_RETRY_MIN_WAIT_SECONDS: float = 1.0
    PROVIDER_RETRY_MAX_WAIT_SECONDS: float = 10.0

    # --- Rendering service ---
    RENDER_URL: str = "https://quickchart.io/chart"
    RENDER_TIMEOUT_SECONDS: float = 20.0
    RENDER_USER_AGENT: str = "candle-chart-pipeline/0.1 (Candlestick)"

    # --- Cache ---
    CACHE_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: str = "redis://redis:6379"
    WINDOW_CACHE_TTL_SECONDS: int = 300
    IMAGE_CACHE_TTL_SECONDS: int = 300

    # --- Window ---
    TARGET_CANDLES: int = 20
    MIN_WINDOW_CANDLES: int = 2

    # --- Chart ---
    CHART_WIDTH: int = 800
    CHART_HEIGHT: int = 500
    CHART_THEME: str = "dark"

    # --- Request ---
    REQUEST_TIMEOUT_SECONDS: float = 45.0

    model_config = {"env_prefix": "", "case_sensitive": True}
