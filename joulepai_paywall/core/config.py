# joulepai_paywall/core/config.py
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl # AnyHttpUrl stays in pydantic core
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "JoulePAI Paywall"
    PORT: int = 3000

    # JoulePAI payment service
    JOULEPAI_API_URL: AnyHttpUrl = "https://joulepai.ai/api/v1"
    JOULEPAI_API_KEY: Optional[str] = None  # server-side bearer credential; demo server and client
    JOULEPAI_HANDLE: Optional[str] = None  # demo server recipient handle, e.g. @my-api
    JOULEPAI_CLIENT_WALLET_ID: Optional[str] = None  # only used by the example client
    JOULEPAI_VERIFY_TIMEOUT_SECONDS: float = 10.0

    # x402 gate limits (per configured route)
    X402_VERIFY_RATE_LIMIT: int = 30
    X402_VERIFY_WINDOW_SECONDS: int = 60
    X402_REPLAY_CACHE_SIZE: int = 10000

    # Demo pricing
    GENERATE_PRICE_JOULES: int = 500

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
