"""BackendConfig model."""

from pydantic import BaseModel, Field

from .defaults import DEFAULT_BACKEND_ARGS, DEFAULT_BACKEND_COMMAND


class BackendConfig(BaseModel):
    """Backend MCP server process configuration."""

    command: str = Field(
        default=DEFAULT_BACKEND_COMMAND, description="Executable of the backend MCP server"
    )
    args: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BACKEND_ARGS), description="Command arguments"
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables (the proxy's environment is inherited)",
    )

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]
