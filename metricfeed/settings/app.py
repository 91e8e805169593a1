"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from metricfeed.credentials.provider import (
    CachingCredentialProvider,
    CredentialProvider,
    FileCredentialProvider,
    StaticCredentialProvider,
)
from metricfeed.fetch.config import FetchConfig
from metricfeed.fetch.constants import DEFAULT_API_BASE_URL, DEFAULT_ASSET


DEFAULT_CACHE_PATH = Path("~/.cache/metricfeed/cache.db")


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    api_key: str | None = Field(default=None, validation_alias="GLASSNODE_API_KEY")
    api_key_file: Path | None = Field(
        default=None, validation_alias="METRICFEED_API_KEY_FILE"
    )
    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL, validation_alias="METRICFEED_API_BASE_URL"
    )
    asset: str = Field(default=DEFAULT_ASSET, validation_alias="METRICFEED_ASSET")
    cache_path: Path = Field(
        default=DEFAULT_CACHE_PATH, validation_alias="METRICFEED_CACHE_PATH"
    )
    catalog_path: Path | None = Field(
        default=None, validation_alias="METRICFEED_CATALOG_PATH"
    )

    def resolved_cache_path(self) -> Path:
        """Return the cache path with `~` expanded."""
        return self.cache_path.expanduser()

    def fetch_config(self) -> FetchConfig:
        """Build the fetch configuration from the environment."""
        return FetchConfig(base_url=self.api_base_url, default_asset=self.asset)

    def credential_provider(self) -> CredentialProvider:
        """Build the credential provider.

        An explicit key wins over a key file.
        """
        if self.api_key:
            return StaticCredentialProvider(self.api_key)
        if self.api_key_file is not None:
            return CachingCredentialProvider(
                FileCredentialProvider(self.api_key_file.expanduser())
            )
        return StaticCredentialProvider(None)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
