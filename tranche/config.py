"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./tranche.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Exchange calendar
    exchange_timezone: str = "America/New_York"
    market_close_hour: int = 16  # 4pm exchange-local

    # Quote source
    quote_base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    quote_timeout_seconds: float = 10.0
    quote_max_concurrency: int = 4

    # Strategy
    rsi_period: int = 14
    include_fee: bool = False  # default for portfolio summaries

    model_config = {"env_prefix": "TR_", "env_file": ".env"}


settings = Settings()
