from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # HTTP fetcher
    http_timeout: float = 5.0
    http_verify_ssl: bool = True  # set False behind corporate SSL-inspection proxies

    # Media cache
    public_base_url: str = "https://localhost"
    ephemeral_dir: str = "public"
    index_dir: str = "index"
    ephemeral_url_prefix: str = "/public"
    index_url_prefix: str = "/index"
    image_id_namespace: str = "b55a86a5-2089-4201-aeaa-8c7535695d7f"
    image_ttl_ms: int = 60_000
    sweep_interval_seconds: float = 60.0

    # Image acquisition
    max_image_size: int = 5 * 1024 * 1024
    allowed_image_types: list[str] = [
        "image/png",
        "image/jpg",
        "image/gif",
        "image/jpeg",
        "image/webp",
    ]

    # Rendering fallback
    render_enabled: bool = True
    render_width: int = 1146
    render_height: int = 600
    render_timeout_ms: int = 10_000

    # Logging
    log_level: str = "INFO"


settings = Settings()
