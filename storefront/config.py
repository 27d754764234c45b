# storefront/config.py
from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Optional

from pydantic_settings import BaseSettings

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./storefront.db"

    # Identity service (access tokens are HS256 JWTs signed with this secret)
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None

    # Payment gateway
    GATEWAY_API_URL: str = "https://payments.yoco.com"
    GATEWAY_SECRET_KEY: str = ""
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    # Webhook signing secret, distributed as "<prefix><base64>"
    WEBHOOK_SECRET: str = ""
    WEBHOOK_SECRET_PREFIX: str = "whsec_"
    WEBHOOK_REPLAY_WINDOW_SECONDS: int = 180

    # Storefront
    CURRENCY: str = "ZAR"
    MIN_UNIT_PRICE_CENTS: int = 50
    STORE_NAME: str = "BliximStraat"
    SITE_URL: str = "http://localhost:8888"
    FRONTEND_URL: Optional[str] = None

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
