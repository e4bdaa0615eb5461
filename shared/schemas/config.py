"""Configuration schemas for the vendor booking offline client."""

import os
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class Environment(Enum):
    """Deployment environments reported in the X-Environment header."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


@dataclass
class ApiConfig:
    """Backend API connection settings."""
    base_url: str = "http://localhost:3005"
    environment: Environment = Environment.DEVELOPMENT
    auth_token: Optional[str] = None
    timeout_seconds: float = 10.0

    # Bulk upload of queued offline trips
    bulk_sync_path: str = "/trips/bulk-sync"

    @classmethod
    def from_env(cls) -> "ApiConfig":
        return cls(
            base_url=os.getenv("API_BASE_URL", cls.base_url).rstrip("/"),
            environment=Environment(os.getenv("APP_ENV", cls.environment.value).lower()),
            auth_token=os.getenv("AUTH_TOKEN") or None,
            timeout_seconds=_env_float("API_TIMEOUT_SECONDS", cls.timeout_seconds),
            bulk_sync_path=os.getenv("BULK_SYNC_PATH", cls.bulk_sync_path),
        )

    @property
    def bulk_sync_url(self) -> str:
        return f"{self.base_url}{self.bulk_sync_path}"


@dataclass
class StoreConfig:
    """Local persistence settings.

    The offline trip queue and the response cache live in separate SQLite
    files so clearing one never touches the other.
    """
    offline_db_path: str = "~/.vendor-booking/offline.db"
    cache_db_path: str = "~/.vendor-booking/cache.db"

    # Bumping the generation tag drops every cached response on next open
    cache_name: str = "vendor-booking-cache-v1"

    @classmethod
    def from_env(cls) -> "StoreConfig":
        return cls(
            offline_db_path=os.getenv("OFFLINE_DB_PATH", cls.offline_db_path),
            cache_db_path=os.getenv("CACHE_DB_PATH", cls.cache_db_path),
            cache_name=os.getenv("CACHE_NAME", cls.cache_name),
        )


@dataclass
class SyncConfig:
    """Connectivity detection and sync scheduling."""
    # Polled to detect offline -> online transitions; None disables polling
    health_url: Optional[str] = None
    connectivity_poll_seconds: float = 15.0

    # 0 disables the periodic trigger
    periodic_sync_seconds: float = 0.0

    @classmethod
    def from_env(cls) -> "SyncConfig":
        return cls(
            health_url=os.getenv("HEALTH_URL") or None,
            connectivity_poll_seconds=_env_float(
                "CONNECTIVITY_POLL_SECONDS", cls.connectivity_poll_seconds
            ),
            periodic_sync_seconds=_env_float(
                "PERIODIC_SYNC_SECONDS", cls.periodic_sync_seconds
            ),
        )


@dataclass
class ClientConfig:
    """Combined client configuration."""
    api: ApiConfig = field(default_factory=ApiConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            api=ApiConfig.from_env(),
            store=StoreConfig.from_env(),
            sync=SyncConfig.from_env(),
        )
