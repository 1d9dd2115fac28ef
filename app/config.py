from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: Literal["dev", "prod", "test"] = "prod"
    DEBUG: bool = False

    # App
    APP_NAME: str = "lakshme-backend"
    APP_HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Firebase service account (Firestore)
    FIREBASE_PROJECT_ID: str | None = None
    FIREBASE_CLIENT_EMAIL: str | None = None
    FIREBASE_PRIVATE_KEY: str | None = None

    # SMTP relay (Gmail app password by default)
    EMAIL_USER: str | None = None
    EMAIL_PASS: str | None = None
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_TIMEOUT_SEC: int = 30
    MAIL_SENDER_NAME: str = "SRE LAKSHME Electronics & Furnitures"

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str | None = None
    CLOUDINARY_API_KEY: str | None = None
    CLOUDINARY_API_SECRET: str | None = None

    # Frontend
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    SHOP_URL: str = "http://localhost:5173/products"
    LOGO_URL: str = "https://i.pinimg.com/1200x/0c/89/cb/0c89cb3c1fdb66f6833fc6e0dfb04ba4.jpg"

    # Logging / Observability
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    REQUEST_ID_HEADER: str = "X-Request-ID"

    @field_validator("FIREBASE_PRIVATE_KEY", mode="before")
    @classmethod
    def unescape_private_key(cls, v):
        # keys pasted into .env usually carry literal "\n" sequences
        if isinstance(v, str):
            return v.replace("\\n", "\n")
        return v

    @property
    def firebase_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_CLIENT_EMAIL and self.FIREBASE_PRIVATE_KEY)


def get_settings() -> Settings:
    # slightly faster singleton
    global _SETTINGS_SINGLETON
    try:
        return _SETTINGS_SINGLETON  # type: ignore[name-defined]
    except NameError:
        _SETTINGS_SINGLETON = Settings()  # type: ignore[assignment]
        return _SETTINGS_SINGLETON
