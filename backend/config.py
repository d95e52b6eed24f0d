# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./grocery.db"
    LOG_LEVEL: str = "INFO"

    # Public base URL used to build links to generated files
    APP_URL: str = "http://127.0.0.1:8000"
    STORAGE_DIR: str = "storage"
    CURRENCY: str = "AED"
    LOW_STOCK_THRESHOLD: int = 10
    CART_TTL_MINUTES: int = 60

    # Twilio WhatsApp API
    TWILIO_API_URL: str = "https://api.twilio.com"
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_NUMBER: str = ""
    WHATSAPP_DEFAULT_MESSAGE: str = "Hello {{name}}, here is today's price list."
    WHATSAPP_MAX_ATTEMPTS: int = 3
    WHATSAPP_RETRY_DELAY_SECONDS: int = 30
    PHONE_DEFAULT_COUNTRY_CODE: str = "+971"

    # Geoapify address autocomplete
    GEOAPIFY_API_KEY: str = ""
    GEOAPIFY_BASE_URL: str = "https://api.geoapify.com/v1/geocode/autocomplete"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
