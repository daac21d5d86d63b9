"""ToolDescriptor model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _empty_object_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


class ToolDescriptor(BaseModel):
    """A tool advertised to the client: name, description and input schema.

    ``plugin`` tags plugin-sourced tools with their owning plugin. It is used
    for routing only and never serialized.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=_empty_object_schema, alias="inputSchema"
    )
    plugin: str | None = Field(default=None, exclude=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
