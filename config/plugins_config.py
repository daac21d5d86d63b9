"""PluginsConfig model."""

from pathlib import Path

from pydantic import BaseModel, Field

from .defaults import DEFAULT_GIT_BASE_URL, DEFAULT_PLUGINS_DIR


class PluginsConfig(BaseModel):
    """Plugin installation settings."""

    directory: Path = Field(
        default=DEFAULT_PLUGINS_DIR, description="Directory holding plugins.json and plugins"
    )
    git_base_url: str = Field(
        default=DEFAULT_GIT_BASE_URL, description="Base URL plugin repositories are cloned from"
    )
    install_dependencies: bool = Field(
        default=True, description="Install a plugin's requirements.txt on install"
    )
