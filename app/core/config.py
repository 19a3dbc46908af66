import json

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = Field(default="local", alias="ENV")
    database_url: str = Field(alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # ─────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────
    session_secret: str = Field(alias="SESSION_SECRET")
    session_algorithm: str = Field(default="HS256", alias="SESSION_ALGORITHM")
    session_expire_minutes: int = Field(default=30, alias="SESSION_EXPIRE_MINUTES")
    session_cookie_secure: bool | None = Field(default=None, alias="SESSION_COOKIE_SECURE")
    auth_cookie_samesite: str = Field(default="lax", alias="AUTH_COOKIE_SAMESITE")

    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # ─────────────────────────────────────────────
    # Media storage
    # ─────────────────────────────────────────────
    ads_dir: str = Field(default="media/ads", alias="ADS_DIR")
    avatars_dir: str = Field(default="media/avatars", alias="AVATARS_DIR")
    avatar_max_bytes: int = Field(default=5 * 1024 * 1024, alias="AVATAR_MAX_BYTES")
    preview_width: int = Field(default=100, alias="PREVIEW_WIDTH")

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        cleaned = value.strip()
        if cleaned.startswith("postgres://"):
            cleaned = f"postgresql://{cleaned[len('postgres://'):]}"
        if cleaned.startswith("postgresql://") and not cleaned.startswith("postgresql+"):
            cleaned = cleaned.replace("postgresql://", "postgresql+asyncpg://", 1)
        return cleaned

    @field_validator("auth_cookie_samesite", mode="before")
    @classmethod
    def normalize_auth_cookie_samesite(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        return value.strip().lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        return value.strip().upper()

    @model_validator(mode="after")
    def validate_cookie_settings(self) -> "Settings":
        if self.auth_cookie_samesite not in {"lax", "strict", "none"}:
            raise ValueError("AUTH_COOKIE_SAMESITE must be one of: lax, strict, none")
        if self.auth_cookie_samesite == "none" and not self.session_cookie_secure_value():
            raise ValueError("AUTH_COOKIE_SAMESITE=none requires SESSION_COOKIE_SECURE=true")
        if self.session_expire_minutes <= 0:
            raise ValueError("SESSION_EXPIRE_MINUTES must be positive")
        if self.preview_width <= 0:
            raise ValueError("PREVIEW_WIDTH must be positive")
        return self

    def session_cookie_secure_value(self) -> bool:
        if self.session_cookie_secure is not None:
            return self.session_cookie_secure
        return self.env not in {"local", "test"}

    def cors_origin_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        values: list[str]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                values = [str(v) for v in parsed if isinstance(v, str)]
            else:
                values = [raw]
        else:
            values = raw.split(",")

        normalized: list[str] = []
        seen: set[str] = set()
        for value in values:
            cleaned = value.strip().strip("\"'")
            if not cleaned:
                continue
            # CORS origins are scheme + host (+ optional port) with no path slash.
            if cleaned != "*" and cleaned.endswith("/"):
                cleaned = cleaned.rstrip("/")
            if cleaned in seen:
                continue
            seen.add(cleaned)
            normalized.append(cleaned)

        return normalized

settings = Settings()
