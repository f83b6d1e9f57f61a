from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
)

from chatplay.config import Configuration
from chatplay.errors import TransportError
from chatplay.message import ToolCall, Turn
from chatplay.streaming import CompleteMessage, StreamChunk, TextDelta, ToolCallDelta

logger = logging.getLogger(__name__)

CompletionResult = AsyncIterator[StreamChunk] | CompleteMessage


class ModelProvider:
    """Transport for chat completions.

    ``create_completion`` returns an async iterator of chunks when
    ``config.stream`` is set, otherwise a :class:`CompleteMessage`.
    Failures are raised as :class:`~chatplay.errors.TransportError`.
    """

    system: str = "unknown"

    async def create_completion(
            self,
            transcript: Sequence[Turn],
            config: Configuration,
    ) -> CompletionResult:
        raise NotImplementedError


def build_request(transcript: Sequence[Turn], config: Configuration) -> dict[str, Any]:
    """Map a transcript and configuration to chat-completions kwargs."""
    request: dict[str, Any] = {
        "model": config.model,
        "messages": [turn.to_param() for turn in transcript],
        "temperature": config.temperature,
        "top_p": config.top_p,
        "frequency_penalty": config.frequency_penalty,
        "presence_penalty": config.presence_penalty,
        "stream": config.stream,
    }
    if config.tools:
        request["tools"] = [t.model_dump() for t in config.tools]
        if config.tool_choice != "auto":
            request["tool_choice"] = config.tool_choice
    if config.seed >= 0:
        request["seed"] = config.seed
    if config.max_tokens >= 0:
        request["max_tokens"] = config.max_tokens
    if config.stop:
        request["stop"] = list(config.stop)
    if config.json_mode:
        request["response_format"] = {"type": "json_object"}
    return request


def chunks_from_completion_chunk(chunk) -> list[StreamChunk]:
    """Normalise one OpenAI ``ChatCompletionChunk`` into stream chunks.

    Role-only, finish-only and usage-only chunks produce nothing.
    """
    if not chunk.choices:
        return []
    delta = chunk.choices[0].delta
    chunks: list[StreamChunk] = []
    if delta.content:
        chunks.append(TextDelta(text=delta.content))
    for tc in delta.tool_calls or []:
        function = tc.function
        chunks.append(ToolCallDelta(
            index=tc.index,
            id=tc.id,
            kind=tc.type,
            function_name=function.name if function else None,
            arguments_fragment=function.arguments if function else None,
        ))
    return chunks


def message_from_completion(completion) -> CompleteMessage:
    choice = completion.choices[0]
    message = choice.message
    tool_calls = None
    if message.tool_calls:
        tool_calls = tuple(
            ToolCall(
                id=t.id,
                kind=t.type,
                function_name=t.function.name,
                arguments_text=t.function.arguments or "",
            )
            for t in message.tool_calls
        )
    return CompleteMessage(
        content=message.content,
        tool_calls=tool_calls,
        finish_reason=getattr(choice, "finish_reason", None),
    )


def _wrap_api_error(e: APIError) -> TransportError:
    if isinstance(e, APIStatusError):
        return TransportError(
            f"Server returned {e.status_code}: {e.message}",
            status_code=e.status_code,
            retryable=e.status_code == 429 or e.status_code >= 500,
        )
    if isinstance(e, (APIConnectionError, APITimeoutError)):
        return TransportError(
            f"Connection failed: {e.message}",
            hint="Check the base URL and that the server is reachable.",
            retryable=True,
        )
    return TransportError(str(e))


class OpenAIProvider(ModelProvider):
    """Chat-completions transport for any OpenAI-compatible server.

    A client is built per request from the configuration's base URL, API
    key and timeout unless one is injected.  Client retries are disabled;
    retrying is the caller's decision.

    Args:
        client: Optional pre-built ``AsyncOpenAI`` client.
    """

    system = "openai"

    def __init__(self, client: AsyncOpenAI | None = None):
        self.client = client

    def _client_for(self, config: Configuration) -> AsyncOpenAI:
        if self.client is not None:
            return self.client
        return AsyncOpenAI(
            base_url=config.resolved_base_url(),
            api_key=config.resolved_api_key(),
            max_retries=0,
            timeout=config.timeout,
        )

    async def create_completion(
            self,
            transcript: Sequence[Turn],
            config: Configuration,
    ) -> CompletionResult:
        client = self._client_for(config)
        request = build_request(transcript, config)
        logger.info(
            f"Requesting completion from {config.model} "
            f"({len(request['messages'])} messages, stream={config.stream})"
        )
        try:
            response = await client.chat.completions.create(**request)
        except APIError as e:
            raise _wrap_api_error(e) from e
        if not config.stream:
            return message_from_completion(response)
        return self._iter_chunks(response)

    async def _iter_chunks(self, stream) -> AsyncIterator[StreamChunk]:
        try:
            async for raw in stream:
                for chunk in chunks_from_completion_chunk(raw):
                    yield chunk
        except APIError as e:
            raise _wrap_api_error(e) from e
        finally:
            # Releases the HTTP connection, also on cancellation.
            await stream.close()
