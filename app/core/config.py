# app/core/config.py
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Loads environment variables from .env file."""
    # PageSpeed Insights
    PAGESPEED_API_KEY: str = ""
    PAGESPEED_API_URL: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    PAGESPEED_TIMEOUT: float = 60.0
    PAGESPEED_LOCALE: str = "en"

    # Fallback screenshots, tried in order; "{url}" receives the encoded target URL
    FALLBACK_SCREENSHOT_SERVICES: List[str] = [
        "https://api.screenshotmachine.com/?key=demo&url={url}&dimension=1024x768&format=jpg",
        "https://htmlcsstoimage.com/demo_images/image.jpeg",
    ]
    SCREENSHOT_TIMEOUT: float = 30.0

    # Application
    APP_NAME: str = "SpeedAnalyzer"
    APP_VERSION: str = "1.0.0"
    USER_AGENT: str = "SpeedAnalyzer/1.0"
    CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

# Create a single instance of the settings to be used across the application
settings = Settings()

def get_settings() -> Settings:
    """FastAPI dependency returning the shared settings instance."""
    return settings
