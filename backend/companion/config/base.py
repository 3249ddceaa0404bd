"""
Base configuration settings
"""

import os
from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Base settings configuration"""

    # Application settings
    APP_NAME: str = "S3 Multipart Companion"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001
    ALLOWED_ORIGINS_STR: str = "*"

    # Object store settings (names shared with the upload widget deployment)
    COMPANION_AWS_REGION: str = "us-east-1"
    COMPANION_AWS_KEY: str = ""
    COMPANION_AWS_SECRET: str = ""
    COMPANION_AWS_BUCKET: str = ""
    COMPANION_AWS_ENDPOINT: Optional[str] = None

    # Multipart protocol settings
    PRESIGN_EXPIRES_IN: int = 60  # seconds
    LIST_PARTS_MAX_PAGES: int = 100

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """Parse allowed CORS origins from string"""
        origins_str = os.getenv('ALLOWED_ORIGINS', self.ALLOWED_ORIGINS_STR)
        return [origin.strip() for origin in origins_str.split(',') if origin.strip()]

    @property
    def has_static_credentials(self) -> bool:
        """True when an explicit key pair is configured"""
        return bool(self.COMPANION_AWS_KEY and self.COMPANION_AWS_SECRET)

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Create settings instance
settings = Settings()
