import os
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Explicitly load .env file before defining Settings
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(env_path)

class Settings(BaseSettings):
    PROJECT_NAME: str = "SecureCloud"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Database
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./securecloud.db"

    # Security
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080
    TWO_FACTOR_TOKEN_EXPIRE_MINUTES: int = 5

    # Share links are rendered as {FRONTEND_URL}/share/{token}
    FRONTEND_URL: str = "http://localhost:5173"

    # Storage: "local" streams from UPLOAD_DIR, "s3" redirects to presigned URLs
    STORAGE_BACKEND: str = "local"
    UPLOAD_DIR: str = os.path.join(os.getcwd(), "upload_storage")
    MAX_UPLOAD_SIZE: int = 100 * 1024 * 1024

    S3_ENDPOINT: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_BUCKET: str = "securecloud-files"
    S3_SECURE: bool = True
    S3_REGION: Optional[str] = None

    SHARE_LINK_TTL_SECONDS: int = 3600
    STORAGE_RETRY_ATTEMPTS: int = 2
    STORAGE_RETRY_DELAY_SECONDS: float = 0.2

    @property
    def USE_S3(self) -> bool:
        return self.STORAGE_BACKEND.strip().lower() == "s3"

    class Config:
        case_sensitive = True

settings = Settings()
