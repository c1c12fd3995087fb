from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENIBRA_TIMEOUT_MS = 10_000
DEFAULT_ENIBRA_CACHE_SEC = 30


class Settings(BaseSettings):
    app_name: str = "hys-backend"
    app_version: str = "dev"
    app_env: str = "development"
    local_timezone: str = "Europe/Istanbul"
    log_level: str = "INFO"

    enibra_base_url: str = ""
    enibra_musteri_kodu: str = ""
    enibra_parola: str = ""
    enibra_host_header: str | None = None
    enibra_insecure_tls: bool = False
    enibra_timeout_ms: int = DEFAULT_ENIBRA_TIMEOUT_MS
    enibra_cache_sec: int = DEFAULT_ENIBRA_CACHE_SEC

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("enibra_timeout_ms", mode="before")
    @classmethod
    def _positive_timeout(cls, value: object) -> int:
        return _positive_int_or_default(value, DEFAULT_ENIBRA_TIMEOUT_MS)

    @field_validator("enibra_cache_sec", mode="before")
    @classmethod
    def _positive_cache_ttl(cls, value: object) -> int:
        return _positive_int_or_default(value, DEFAULT_ENIBRA_CACHE_SEC)

    @field_validator("enibra_insecure_tls", mode="before")
    @classmethod
    def _parse_insecure_flag(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _positive_int_or_default(value: object, default: int) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if parsed <= 0:
        return default
    return parsed


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_local_timezone() -> ZoneInfo:
    return ZoneInfo(get_settings().local_timezone)


def is_production() -> bool:
    return get_settings().app_env.strip().lower() in {"prod", "production"}
