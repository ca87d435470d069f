"""Cache settings using pydantic-settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Cache configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False
    environment: str = "local"  # local, development, production

    # Provider selection: fs | s3 | browser
    cache_provider: Literal["fs", "s3", "browser"] = "fs"

    # Entries older than this are stale (and a miss outside stale-while-revalidate).
    cache_ttl_seconds: float = 3600.0
    # Stale entries older than this are never served, even when revalidating.
    cache_max_stale_age_seconds: float = 7 * 24 * 3600.0

    # Filesystem provider
    cache_dir: str = ".cache"

    # Object-storage provider
    cache_s3_prefix: str = "cache/"

    # Size-bounded providers (browser KV)
    cache_max_size_bytes: int = 2 * 1024 * 1024  # 2 MiB
    cache_browser_storage_key: str = "app_cache"

    # Azure Blob Storage, used as the object-storage medium.
    # Connection string is for local development; other environments use managed identity.
    azure_blob_account_url: str = ""
    azure_blob_container: str = "cache"
    azure_blob_connection_string: str = ""

    @property
    def use_managed_identity(self) -> bool:
        """Use managed identity for Azure services in non-local environments."""
        return self.environment != "local"


settings = Settings()
