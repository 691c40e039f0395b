"""Configuration settings for zkteco-sync."""
from __future__ import annotations

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Default device (used when no machines.yml is present)
    ZK_DEVICE_IP: str = "192.168.1.100"
    ZK_PORT: int = 4370
    ZK_PASSWORD: int = 0
    ZK_TIMEOUT: float = 60
    ZK_TRANSPORT: str = "tcp"
    ZK_PROFILE: str = "auto"

    # Device registry
    ZK_MACHINES_CONFIG: str = "config/machines.yml"

    # Device info cache
    CACHE_ENABLED: bool = True
    CACHE_DEVICE_INFO_MINUTES: int = 60

    # Persistence and export
    DATABASE_URL: str = "sqlite:///zkteco.db"
    EXPORT_DIR: str = "export"

    # Scheduled sync
    SCHEDULER_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 30

    # API Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_KEY: str = "change-me-in-production"
    API_CORS_ORIGINS: str = "http://localhost"

    # General
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=[".env.local", ".env"],
        case_sensitive=True,
        extra="allow",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.API_CORS_ORIGINS.split(",") if o.strip()]

    @property
    def device_info_ttl(self) -> int:
        return self.CACHE_DEVICE_INFO_MINUTES * 60


# Lazy-loaded singleton
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (lazy loaded)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
