# orderdesk/config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from decimal import Decimal
from functools import lru_cache
import os

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application Settings
    APP_NAME: str = "OrderDesk"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1"

    # Database Settings
    DATABASE_URL: str = "sqlite:///./orderdesk.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20
    DATABASE_POOL_RECYCLE: int = 300
    DATABASE_LOCK_TIMEOUT: int = 30  # seconds a writer waits on a locked row

    # JWT Settings
    JWT_SECRET_KEY: str = "jwt-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRES: int = 1800  # 30 minutes

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    LOG_JSON: bool = False

    # Tenant Defaults
    DEFAULT_TIMEZONE: str = "Asia/Tashkent"
    DEFAULT_ORDER_NUMBER_PREFIX: str = "ORD-"
    DEFAULT_MAX_ORDERS_PER_MONTH: int = 500

    # Ordering Rules
    PRICE_TOLERANCE: Decimal = Decimal("0.01")
    LOW_STOCK_DEFAULT_THRESHOLD: int = 10
    BATCH_MAX_ORDERS: int = 100

    # Pagination Settings
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Notifications
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_MAX_ATTEMPTS: int = 5
    NOTIFICATION_BATCH_SIZE: int = 50

    # CORS Settings
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

@lru_cache()
def get_settings() -> Settings:
    # ORDERDESK_ENV selects development, production or testing defaults
    return get_settings_by_env(os.getenv("ORDERDESK_ENV", "default"))

# Environment-specific settings
class DevelopmentSettings(Settings):
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"

class ProductionSettings(Settings):
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"
    LOG_JSON: bool = True

class TestingSettings(Settings):
    DATABASE_URL: str = "sqlite://"
    JWT_ACCESS_TOKEN_EXPIRES: int = 300  # 5 minutes for testing
    NOTIFICATIONS_ENABLED: bool = False

def get_settings_by_env(env: str = "development") -> Settings:
    if env == "development":
        return DevelopmentSettings()
    elif env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    else:
        return Settings()
