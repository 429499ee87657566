import json
from typing import List, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVS = {"prod", "production"}
LOCAL_ENVS = {"dev", "development", "staging", "stage"}
KNOWN_WEAK_SECRETS = {"", "change-me", "change_me", "secret", "dev-secret-key"}


class Settings(BaseSettings):
    app_name: str = "Stock Ledger Backend"
    env: str = "dev"
    log_level: str = "INFO"
    slow_request_ms: float = Field(default=1000.0, gt=0)

    # Auth
    secret_key: str
    access_token_expire_minutes: int = Field(default=60, ge=1, le=24 * 60)
    auth_rate_limit_max_attempts: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)
    auth_rate_limit_lock_seconds: int = Field(default=900, ge=1)

    # Storage
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)
    sqlite_busy_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    sqlite_immediate_transactions: bool = True

    # Stock ledger
    stock_mutation_max_attempts: int = Field(default=3, ge=1, le=20)
    notification_provider: str = "log"

    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() in PRODUCTION_ENVS

    @property
    def is_local(self) -> bool:
        return self.env.strip().lower() in LOCAL_ENVS

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: Union[str, List[str], None]) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw = value.strip()
            if raw.startswith("["):
                parsed = json.loads(raw)
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON value must be a list")
                value = parsed
            else:
                value = raw.split(",")
        return [str(origin).strip() for origin in value if str(origin).strip()]

    @field_validator("notification_provider", "log_level", mode="before")
    @classmethod
    def strip_names(cls, value: str | None) -> str | None:
        return value.strip() if isinstance(value, str) else value

    @field_validator("notification_provider")
    @classmethod
    def lowercase_provider(cls, value: str) -> str:
        return value.lower() or "null"

    @model_validator(mode="after")
    def check_production_settings(self) -> "Settings":
        if not self.is_production:
            return self

        secret = self.secret_key.strip()
        if secret.lower() in KNOWN_WEAK_SECRETS or len(secret) < 32:
            raise ValueError("SECRET_KEY must be a strong random value in production")
        if "*" in self.cors_origins or self.cors_origin_regex:
            raise ValueError("Production CORS must list explicit origins")
        if self.database_url.lower().startswith("sqlite"):
            raise ValueError("DATABASE_URL must point at a networked database in production")
        return self


settings = Settings()
