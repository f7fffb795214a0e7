"""Configuration management for the try-on client."""

import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


TRYON_PATH = "/api/try-on"
PREPROCESS_PATH = "/api/preprocess-person"
HEALTH_PATH = "/health"


class ApiConfig(BaseModel):
    """Inference service connection settings."""
    base_url: str = "http://localhost:8000"
    user_agent: str = "VirtualTryOn/1.0"

    @field_validator("base_url")
    @classmethod
    def _strip_endpoint(cls, value: str) -> str:
        # Deployments often hand out the full try-on URL instead of the base
        value = value.strip().rstrip("/")
        if value.endswith(TRYON_PATH):
            value = value[: -len(TRYON_PATH)]
        return value

    @property
    def tryon_url(self) -> str:
        return f"{self.base_url}{TRYON_PATH}"

    @property
    def preprocess_url(self) -> str:
        return f"{self.base_url}{PREPROCESS_PATH}"

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{HEALTH_PATH}"

    @property
    def headers(self) -> dict[str, str]:
        """Headers some proxies expect. Never set Content-Type for multipart."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }


class TimeoutConfig(BaseModel):
    """Timeouts in seconds."""
    tryon: float = 180.0  # inference is compute-heavy
    health: float = 10.0
    preprocess: float = 120.0
    download: float = 30.0


class ClientConfig(BaseSettings):
    """Main client configuration."""

    # Paths
    cache_dir: Path = Path(tempfile.gettempdir()) / "oui_tryon"
    bundle_dir: Path = Path("assets/clothes")

    # Sub-configs
    api: ApiConfig = Field(default_factory=ApiConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)

    # Behaviour
    health_probe: bool = True
    cache_resolved_garments: bool = False
    diagnostic_log_limit: int = Field(default=300, ge=1)
    show_error_details: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_prefix = "OUI_TRYON_"
        env_nested_delimiter = "__"
        extra = "ignore"


def load_config() -> ClientConfig:
    """Load configuration from environment and defaults."""
    return ClientConfig()
