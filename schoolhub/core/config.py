from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    APP_NAME: str = "SchoolHub"
    AUTH_MODE: Literal["firebase", "mock"] = "mock"

    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    FIREBASE_CREDENTIALS_PATH: str = "./firebase-credentials.json"

    CORS_ORIGINS: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "SchoolHub <no-reply@schoolhub.local>"

    LEAVE_ATTACHMENT_BUCKET: str = "leave-applications"
    NOTIFICATION_IMAGE_BUCKET: str = "notifications"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    DEFAULT_PAGE_SIZE: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
