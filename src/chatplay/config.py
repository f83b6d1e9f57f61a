"""Request configuration and initial playground state.

:class:`Configuration` is an injected value object: the consumer hands it
to the provider on every ``send()``.  Loading and saving it across
sessions is left to the embedding application.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from chatplay.errors import ConfigurationError
from chatplay.message import Role, Turn
from chatplay.tools import ToolDefinition

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s:%(name)s:%(levelname)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ToolChoice = Literal["auto", "none", "required"] | dict[str, Any]


class Configuration(BaseModel):
    """Sampling and transport settings for a completion request.

    Negative ``seed`` and ``max_tokens`` mean "not set" and are left out
    of the request.
    """

    model: str = Field(default="gpt-3.5-turbo", min_length=1)
    seed: int = -1
    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    frequency_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    presence_penalty: float = Field(default=0.0, ge=-2.0, le=2.0)
    max_tokens: int = -1
    stop: list[str] = Field(default_factory=list)
    json_mode: bool = False
    stream: bool = True

    base_url: str | None = None
    api_key: str | None = None
    timeout: float = Field(default=600.0, gt=0)

    tools: list[ToolDefinition] = Field(default_factory=list)
    tool_choice: ToolChoice = "auto"

    def resolved_api_key(self) -> str:
        return self.api_key or os.getenv("OPENAI_API_KEY") or ""

    def resolved_base_url(self) -> str | None:
        # An empty base URL means the client default.
        return self.base_url or None

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> Configuration:
        """Validate *settings* over the defaults.

        Raises:
            ConfigurationError: If any value fails validation.
        """
        try:
            return cls.model_validate(dict(settings))
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)",
                hint=str(e),
            ) from e


DEFAULT_TURNS: tuple[Turn, ...] = (
    Turn(role=Role.SYSTEM, content="You are a helpful assistant"),
    Turn(role=Role.USER, content=""),
)


@dataclass
class InitialState:
    """Starting transcript and configuration for a playground session."""

    turns: tuple[Turn, ...] = DEFAULT_TURNS
    config: Configuration = field(default_factory=Configuration)


def _parse_json_param(params: Mapping[str, str], key: str) -> Any:
    raw = params.get(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Error parsing {key} parameter: {e}")
        return None


def load_initial_state(params: Mapping[str, str]) -> InitialState:
    """Build the initial state from JSON-encoded parameters.

    Recognised keys are ``messages``, ``tools``, ``tool_choice`` and
    ``settings`` (the latter merged over the defaults).  A value that
    fails to parse or validate is logged and its default kept.
    """
    state = InitialState()

    messages = _parse_json_param(params, "messages")
    if messages is not None:
        try:
            state.turns = tuple(Turn.from_param(m) for m in messages)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Error loading messages parameter: {e}")

    settings: dict[str, Any] = {}
    raw_settings = _parse_json_param(params, "settings")
    if isinstance(raw_settings, dict):
        settings.update(raw_settings)
    tools = _parse_json_param(params, "tools")
    if tools is not None:
        settings["tools"] = tools
    tool_choice = _parse_json_param(params, "tool_choice")
    if tool_choice is not None:
        settings["tool_choice"] = tool_choice

    if settings:
        try:
            state.config = Configuration.from_settings(settings)
        except ConfigurationError as e:
            logger.warning(f"{e} ({e.hint})")
    return state


def configure_logging(
    level: int = logging.INFO, log_file: str | None = "chatplay.log"
) -> None:
    """Install the standard chatplay log format on the root logger."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )
