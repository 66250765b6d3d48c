"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Community Map"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Tiers
    default_tier: str = "free"
    free_point_limit: int = 20

    # Drawing: delay before rebuilding after a create event
    create_rebuild_delay: float = 0.1   # seconds

    # Rendering / export
    render_scale: float = 2.0
    pdf_margin_mm: float = 10.0
    map_width: int = 800
    map_height: int = 600
    export_file_base: str = "community-map"


settings = Settings()
