from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./marketos.db"
    log_level: str = "INFO"

    # Auto-sync
    auto_sync_enabled: bool = True
    default_sync_interval_minutes: int = 5
    sync_tick_seconds: int = 60  # clamped to the smallest integration interval
    sync_shutdown_grace_seconds: float = 30.0
    sync_lookback_days: int = 30
    run_history_size: int = 50  # finished runs kept in memory per integration

    # Marketplace HTTP
    http_timeout_seconds: float = 15.0
    http_retries: int = 2
    wb_statistics_api_base: str = "https://statistics-api.wildberries.ru"
    ozon_api_base: str = "https://api-seller.ozon.ru"
    ym_api_base: str = "https://api.partner.market.yandex.ru"

    # Telegram
    telegram_bot_token: str = ""
    telegram_allowed_user_id: Optional[int] = None

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
