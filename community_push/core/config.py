from typing import Literal, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    mongodb_url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    database_name: str = Field(default="community_push", min_length=1, description="MongoDB database name")

    # Subscription registry
    registry_backend: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="Registry storage backend (memory is process-local, for development and tests)"
    )
    registry_page_size: int = Field(default=1000, gt=0, le=10000, description="Page size used when loading fan-out targets")

    # Content backend webhook
    content_webhook_secret: Optional[str] = Field(default=None, description="Shared secret expected from the content backend")
    content_media_base_url: str = Field(default="http://localhost:1337", description="Prefix for relative media URLs")

    # Web Push (VAPID)
    vapid_public_key: Optional[str] = Field(default=None, description="VAPID public key (URL-safe base64)")
    vapid_private_key: Optional[str] = Field(default=None, description="VAPID private key (URL-safe base64 or PEM)")
    vapid_subject: str = Field(default="mailto:notifications@greenwoodcity.com", description="VAPID sub claim")

    # Notification defaults
    site_name: str = "Greenwood City Block C"
    push_default_icon: str = "/icon-192.png"
    push_default_badge: str = "/icon-192.png"

    # Fan-out
    push_concurrency: int = Field(default=50, gt=0, le=1000, description="Max in-flight deliveries per fan-out")
    push_timeout_seconds: float = Field(default=10.0, gt=0, le=120, description="Per-delivery transport timeout")
    push_ttl_seconds: int = Field(default=86400, ge=0, description="Push message TTL")
    send_welcome_notification: bool = Field(default=True, description="Send a best-effort welcome push after registration")

    # App Settings
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    api_version: str = "1.0.0"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Frontend CORS
    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @property
    def push_configured(self) -> bool:
        """Both halves of the VAPID key pair are present"""
        return bool(
            self.vapid_public_key and self.vapid_public_key.strip()
            and self.vapid_private_key and self.vapid_private_key.strip()
        )

    @validator('allowed_origins')
    def validate_origins(cls, v, values):
        """Validate CORS origins - no wildcards in production"""
        debug = values.get('debug', False)
        if not debug:
            for origin in v:
                if '*' in origin:
                    raise ValueError(f"Wildcard CORS origins not allowed in production: {origin}")
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
