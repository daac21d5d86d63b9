"""Main ProxyConfig model."""

from pydantic import BaseModel, Field, field_validator

from .analytics_config import AnalyticsConfig
from .backend_config import BackendConfig
from .defaults import DEFAULT_LOG_LEVEL
from .plugins_config import PluginsConfig
from .timeouts_config import TimeoutsConfig


class ProxyConfig(BaseModel):
    """Main configuration model."""

    backend: BackendConfig = Field(
        default_factory=BackendConfig,
        description="Backend MCP server to spawn",
    )
    plugins: PluginsConfig = Field(
        default_factory=PluginsConfig,
        description="Plugin storage and installation",
    )
    timeouts: TimeoutsConfig = Field(
        default_factory=TimeoutsConfig,
        description="Backend request timeouts",
    )
    analytics: AnalyticsConfig = Field(
        default_factory=AnalyticsConfig,
        description="Usage analytics",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        description="Logging level name",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level
