from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process settings, read from ``APP_``-prefixed environment variables.

    Without overrides the service runs against ``churchauthz.db`` at the repo
    root and the bundled ``config/security_config.yaml`` route table.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    # Identity tokens are HS256 JWTs minted by the auth service.
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Role -> permission cache lifetime. Role writes invalidate immediately;
    # the TTL only bounds staleness from writes made by other processes.
    permission_cache_ttl_seconds: float = 60.0

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "churchauthz.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
