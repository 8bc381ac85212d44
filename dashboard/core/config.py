from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from fastapi import Depends
from typing_extensions import Annotated


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Full backend (redis protocol)
    redis_url: str | None = None
    redis_pool_size: int = 5

    # Restricted backend (REST)
    upstash_redis_rest_url: str | None = None
    upstash_redis_rest_token: str | None = None

    cache_default_ttl_seconds: int = 300  # default cache-aside TTL
    cache_timeout_seconds: float = 5.0
    session_cache_ttl_seconds: int = 3600

    database_url: str = "sqlite+aiosqlite:///./dashboard.db"
    jwt_secret: str = "dev-secret-change-me-at-least-32-chars"
    jwt_algorithm: str = "HS256"
    session_cookie_name: str = "auth-token"

    @property
    def has_redis(self) -> bool:
        return bool(self.redis_url)

    @property
    def has_rest(self) -> bool:
        return bool(self.upstash_redis_rest_url and self.upstash_redis_rest_token)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SettingsDep = Annotated[Settings, Depends(get_settings)]
