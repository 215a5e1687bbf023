"""
Application settings and configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from ``STACKPILOT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STACKPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Synthesis
    app: str | None = None
    output: str = "stackpilot.out"

    # Terraform CLI
    terraform_binary: str = "terraform"

    # Workflow
    auto_approve: bool = False
    speculative: bool = False

    # Terraform Cloud / Enterprise
    tfc_hostname: str = "app.terraform.io"
    tfc_token: str | None = None

    # Logging
    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
