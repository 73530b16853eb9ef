from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    log_level: str = Field(default="info", alias="LOG_LEVEL")
    app_version: str = Field(default="", alias="APP_VERSION")
    service_name: str = Field(default="demo-app", alias="SERVICE_NAME")

    otel_collector_endpoint: str = Field(default="", alias="OTEL_COLLECTOR_ENDPOINT")
    otel_collector_insecure: bool = Field(default=True, alias="OTEL_COLLECTOR_INSECURE")
    tracing_enabled: bool = Field(default=True, alias="TRACING_ENABLED")

    abnormal_probability: float = Field(default=0.01, ge=0.0, le=1.0, alias="ABNORMAL_PROBABILITY")
    handler_max_delay_ms: int = Field(default=100, ge=0, alias="HANDLER_MAX_DELAY_MS")
    normal_delay_ms: int = Field(default=10, ge=0, alias="NORMAL_DELAY_MS")
    abnormal_delay_ms: int = Field(default=3000, ge=0, alias="ABNORMAL_DELAY_MS")
    random_seed: int | None = Field(default=None, alias="RANDOM_SEED")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    @field_validator("random_seed", mode="before")
    @classmethod
    def _blank_seed_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
