from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App settings
    APP_NAME: str = "VideoTube API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Token settings
    ACCESS_TOKEN_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_SECRET: str
    REFRESH_TOKEN_EXPIRE_DAYS: int = 10
    ALGORITHM: str = "HS256"

    # Cookies carrying the token pair
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"

    # MongoDB
    MONGO_URI: Optional[str] = None
    MONGO_DB: str = "videotube"

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None

    # Multipart files are staged here before being pushed to Cloudinary
    UPLOAD_TEMP_DIR: str = "./public/temp"
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024

    # CORS settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # API settings
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "DEBUG"
    LOG_DIR: str = "logs"
    LOG_TTL_DAYS: int = 7

    class Config:
        env_file = ".env"
        case_sensitive = True

# Create settings instance
settings = Settings()

# Validate required settings
if not settings.ACCESS_TOKEN_SECRET:
    raise ValueError("ACCESS_TOKEN_SECRET environment variable is required")

if not settings.REFRESH_TOKEN_SECRET:
    raise ValueError("REFRESH_TOKEN_SECRET environment variable is required")

if not settings.MONGO_URI:
    raise ValueError("MONGO_URI environment variable is required")
