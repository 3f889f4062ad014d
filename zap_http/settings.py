import os
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Runtime
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Upstream services
    analytics_engine_url: str = Field(
        default="http://localhost:8001", alias="ANALYTICS_ENGINE_URL"
    )
    intent_engine_url: str = Field(
        default="http://127.0.0.1:3002", alias="INTENT_ENGINE_URL"
    )
    backend_api_url: str = Field(default="http://127.0.0.1:3001", alias="BACKEND_API_URL")
    account_api_url: str = Field(default="http://127.0.0.1:3004", alias="ACCOUNT_API_URL")
    debank_api_url: str = Field(
        default="https://pro-openapi.debank.com", alias="DEBANK_API_URL"
    )

    # Request behaviour
    http_timeout: float = Field(default=10.0, alias="HTTP_TIMEOUT")
    http_timeout_production: float = Field(default=30.0, alias="HTTP_TIMEOUT_PRODUCTION")
    http_max_attempts: int = Field(default=2, ge=1, alias="HTTP_MAX_ATTEMPTS")
    http_retry_delay: float = Field(default=1.0, ge=0, alias="HTTP_RETRY_DELAY")
    http_max_retry_delay: float | None = Field(default=None, alias="HTTP_MAX_RETRY_DELAY")

    # Result cache defaults
    cache_fresh_seconds: float = Field(default=300.0, ge=0, alias="CACHE_FRESH_SECONDS")
    cache_retain_seconds: float = Field(default=600.0, ge=0, alias="CACHE_RETAIN_SECONDS")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(dict(os.environ))

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def service_urls(self) -> dict[str, str]:
        return {
            "analytics_engine": self.analytics_engine_url,
            "intent_engine": self.intent_engine_url,
            "backend_api": self.backend_api_url,
            "account_api": self.account_api_url,
            "debank": self.debank_api_url,
        }


@dataclass(frozen=True)
class HttpConfig:
    """Configuration threaded through the client factory and executor."""

    timeout: float = 10.0
    max_attempts: int = 2
    retry_delay: float = 1.0
    max_retry_delay: float | None = None
    cache_fresh_for: timedelta = timedelta(minutes=5)
    cache_retain_for: timedelta = timedelta(minutes=10)
    services: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpConfig":
        return cls(
            timeout=(
                settings.http_timeout_production
                if settings.is_production
                else settings.http_timeout
            ),
            max_attempts=settings.http_max_attempts,
            retry_delay=settings.http_retry_delay,
            max_retry_delay=settings.http_max_retry_delay,
            cache_fresh_for=timedelta(seconds=settings.cache_fresh_seconds),
            cache_retain_for=timedelta(seconds=settings.cache_retain_seconds),
            services=settings.service_urls,
        )


global_settings = Settings.from_env()
