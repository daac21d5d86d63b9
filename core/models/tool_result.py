"""ToolResult models."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ContentItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: str | None = None


class ToolResult(BaseModel):
    """Result shape shared by plugin and management tools."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[ContentItem] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def from_text(cls, text: str, is_error: bool = False) -> "ToolResult":
        return cls(content=[ContentItem(type="text", text=text)], is_error=is_error)

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        if not self.is_error:
            data.pop("isError", None)
        return data


def coerce_tool_result(value: Any) -> ToolResult:
    """Normalize whatever a plugin returned into a ToolResult."""
    if isinstance(value, ToolResult):
        return value
    if isinstance(value, str):
        return ToolResult.from_text(value)
    if isinstance(value, dict) and "content" in value:
        return ToolResult.model_validate(value)
    return ToolResult.from_text(json.dumps(value, indent=2, default=str))
