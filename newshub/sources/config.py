"""Configuration for the sources service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourcesConfig(BaseSettings):
    """Settings for source registration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCES_",
        case_sensitive=False,
        extra="ignore",
    )

    seed_on_init: bool = Field(
        default=True,
        description="Automatically seed from JSON on first init if table is empty",
    )
