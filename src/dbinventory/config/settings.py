"""
Application settings and configuration management.

Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    log_level: str = Field(default="INFO")

    # sqlcmd
    sqlcmd_path: Optional[str] = Field(
        default=None,
        description="Explicit sqlcmd binary; skips bundled/PATH resolution"
    )
    tools_bin_path: str = Field(
        default="/home/site/wwwroot/tools/bin",
        description="Directory holding client tools bundled with the Function App"
    )
    sqlcmd_login_timeout: int = Field(default=15)
    sqlcmd_query_timeout: int = Field(default=120)
    trust_server_certificate: bool = Field(default=True)

    # Name matching for database include/exclude lists
    name_match_case_sensitive: bool = Field(default=True)

    # Azure Storage
    storage_connection_string: str = Field(
        default="UseDevelopmentStorage=true",
        alias="STORAGE_CONNECTION_STRING"
    )
    storage_account_url: Optional[str] = Field(default=None)
    report_table_name: str = Field(default="inventoryreports")

    # Scheduled stale backup sweep
    sweep_instances: str = Field(default="")
    sweep_username: Optional[str] = Field(default=None)
    sweep_password: Optional[str] = Field(default=None)
    sweep_full_backup_hours: int = Field(default=24)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True

    def get_sweep_instances(self) -> list[str]:
        """Instance addresses configured for the scheduled sweep."""
        return [i.strip() for i in self.sweep_instances.split(",") if i.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
