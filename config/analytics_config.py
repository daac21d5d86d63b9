"""AnalyticsConfig model."""

from pathlib import Path

from pydantic import BaseModel, Field

from .defaults import DEFAULT_ANALYTICS_PATH


class AnalyticsConfig(BaseModel):
    """Usage analytics log configuration."""

    enabled: bool = Field(default=True, description="Append usage records to the log")
    path: Path = Field(default=DEFAULT_ANALYTICS_PATH, description="JSON-lines log file")
