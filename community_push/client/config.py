from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    # Site
    origin: str = Field(default="http://localhost:3000", description="Origin the agent serves (scheme://host[:port])")
    api_base_url: str = Field(default="http://localhost:8000/api/v1", description="Push service API base URL")
    site_name: str = "Greenwood City Block C"

    # Cache
    cache_prefix: str = Field(default="greenwood-city", min_length=1)
    cache_generation: str = Field(default="v1", min_length=1, description="Bumped on every deployment")
    precache_manifest: List[str] = Field(
        default_factory=lambda: ["/", "/news", "/events", "/gallery", "/contact", "/manifest.json"],
        description="Assets pre-populated on install"
    )
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)

    # Subscription lifecycle
    auto_prompt_delay_seconds: float = Field(default=1.5, ge=0)
    state_path: Optional[str] = Field(default=None, description="Durable client state file (JSON)")
    agent_script_url: str = "/sw.js"

    @validator('origin', 'api_base_url')
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def static_cache_name(self) -> str:
        return f"{self.cache_prefix}-{self.cache_generation}"

    @property
    def runtime_cache_name(self) -> str:
        return f"{self.cache_prefix}-runtime-{self.cache_generation}"

    class Config:
        env_prefix = "PUSH_CLIENT_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
