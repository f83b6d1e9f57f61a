from typing import Any

from pydantic import BaseModel, Field, model_validator


class ToolDefinition(BaseModel):
    """A function the model may call, as offered in the request.

    Accepts either the flat ``{"name", "description", "parameters"}``
    shape or the OpenAI ``{"type": "function", "function": {...}}`` shape,
    and always dumps to the latter.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @model_validator(mode="before")
    @classmethod
    def unwrap_function(cls, data: Any) -> Any:
        if isinstance(data, dict) and "function" in data:
            return data["function"]
        return data

    def model_dump(self, **kwargs):
        """Override to return the OpenAI tool schema."""
        return self.get_schema()

    def get_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
