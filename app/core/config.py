"""Application settings.

Centralizes configuration (template lookup, scratch location, writer and
formula behavior) so the rest of the app can depend on a single settings
object rather than scattered env reads.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env."""

    # Package searched for bundled templates when a path does not exist
    template_package: str | None = "app.templates"

    # Parent directory for per-render scratch space (system temp if unset)
    scratch_dir: str | None = None

    # Rendering behavior
    evaluate_formulas: bool = True
    streaming_writer: bool = True
    strict_sheet_selectors: bool = False

    # Load variables from a local .env file when present.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


# Singleton settings instance used throughout the application.
settings = Settings()
