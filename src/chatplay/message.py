from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# Order used when a user cycles a turn's role.
ROLES: tuple[Role, ...] = (Role.SYSTEM, Role.USER, Role.ASSISTANT)


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str = ""

    def to_param(self) -> dict:
        return {"type": "text", "text": self.text}


class ImagePart(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    url: str

    def to_param(self) -> dict:
        return {"type": "image_url", "image_url": {"url": self.url}}


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="kind")]


class ToolCall(BaseModel):
    """A function invocation requested by the assistant.

    ``arguments_text`` is the raw JSON argument blob as streamed; it is
    not guaranteed to parse until the turn is complete.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str = "function"
    function_name: str = ""
    arguments_text: str = ""

    def to_param(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind,
            "function": {
                "name": self.function_name,
                "arguments": self.arguments_text,
            },
        }


class Turn(BaseModel):
    """One conversation entry.

    ``content`` is a plain string, a tuple of content parts (user-authored
    multi-part turns only), or ``None`` while an assistant turn is pending.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | tuple[ContentPart, ...] | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    @field_serializer("role")
    def serialize_role(self, role: Role, _info) -> str:
        return role.value

    @property
    def is_pending(self) -> bool:
        return self.content is None and not self.tool_calls

    def to_param(self) -> dict[str, Any]:
        """Render the turn as an OpenAI chat-completions message."""
        param: dict[str, Any] = {"role": self.role.value}
        if isinstance(self.content, tuple):
            param["content"] = [part.to_param() for part in self.content]
        else:
            param["content"] = self.content
        if self.role is Role.ASSISTANT and self.tool_calls:
            param["tool_calls"] = [t.to_param() for t in self.tool_calls]
        return param

    @classmethod
    def from_param(cls, param: dict[str, Any]) -> Turn:
        """Parse an OpenAI chat-completions message into a turn."""
        content = param.get("content")
        if isinstance(content, list):
            parts: list[TextPart | ImagePart] = []
            for part in content:
                if part.get("type") == "image_url":
                    parts.append(ImagePart(url=part["image_url"]["url"]))
                else:
                    parts.append(TextPart(text=part.get("text", "")))
            content = tuple(parts)
        tool_calls = None
        if param.get("tool_calls"):
            tool_calls = tuple(
                ToolCall(
                    id=t["id"],
                    kind=t.get("type", "function"),
                    function_name=t.get("function", {}).get("name", ""),
                    arguments_text=t.get("function", {}).get("arguments") or "",
                )
                for t in param["tool_calls"]
            )
        return cls(role=Role(param["role"]), content=content, tool_calls=tool_calls)
