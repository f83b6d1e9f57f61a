"""Streaming primitives and the delta merger.

Providers yield :class:`TextDelta` and :class:`ToolCallDelta` chunks, or
return a single :class:`CompleteMessage` when streaming is off.
:func:`merge_chunk` folds one chunk into the turn being assembled and
:func:`merge_message` replaces it wholesale for the non-streamed path.
Both are pure: they return a new :class:`~chatplay.message.Turn`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from chatplay.errors import MalformedChunkError
from chatplay.message import Role, ToolCall, Turn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """A fragment of a tool call.

    A chunk carrying an ``id`` not yet seen opens a new tool call; a chunk
    without one continues the most recent call.  ``index`` mirrors the
    wire field and is advisory only.
    """

    index: int = 0
    id: str | None = None
    kind: str | None = None
    function_name: str | None = None
    arguments_fragment: str | None = None


StreamChunk = Union[TextDelta, ToolCallDelta]


@dataclass(frozen=True)
class CompleteMessage:
    """The final assistant message of a non-streamed completion."""

    content: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None
    finish_reason: str | None = None


def merge_chunk(turn: Turn, chunk: StreamChunk) -> Turn:
    """Fold *chunk* into *turn* and return the resulting turn."""
    if isinstance(chunk, TextDelta):
        return _merge_text(turn, chunk)
    if isinstance(chunk, ToolCallDelta):
        return _merge_tool_call(turn, chunk)
    raise TypeError(f"Unsupported chunk type: {type(chunk).__name__}")


def merge_message(turn: Turn, message: CompleteMessage) -> Turn:
    """Replace the pending *turn* with a complete non-streamed message."""
    return Turn(
        role=Role.ASSISTANT,
        content=message.content or None,
        tool_calls=tuple(message.tool_calls) if message.tool_calls else None,
    )


def _merge_text(turn: Turn, chunk: TextDelta) -> Turn:
    if isinstance(turn.content, tuple):
        # Multi-part content is only ever user-authored.
        logger.warning(
            f"Ignoring text delta aimed at a multi-part {turn.role.value} turn"
        )
        return turn
    return turn.model_copy(update={"content": (turn.content or "") + chunk.text})


def _merge_tool_call(turn: Turn, chunk: ToolCallDelta) -> Turn:
    calls = turn.tool_calls or ()
    known = chunk.id is not None and any(c.id == chunk.id for c in calls)

    if chunk.id is not None and not known:
        if chunk.function_name is None:
            raise MalformedChunkError(
                f"Tool call {chunk.id!r} opened without a function name",
                hint="The server must send the function name with the first "
                "fragment of each tool call.",
            )
        opened = ToolCall(
            id=chunk.id,
            kind=chunk.kind or "function",
            function_name=chunk.function_name,
            arguments_text=chunk.arguments_fragment or "",
        )
        return turn.model_copy(update={"tool_calls": (*calls, opened)})

    if known and chunk.function_name is not None:
        logger.debug(f"Ignoring re-delivered open for tool call {chunk.id!r}")
        return turn

    if not calls:
        raise MalformedChunkError(
            "Tool call continuation received with no open tool call",
        )
    last = calls[-1]
    extended = last.model_copy(
        update={"arguments_text": last.arguments_text + (chunk.arguments_fragment or "")}
    )
    return turn.model_copy(update={"tool_calls": (*calls[:-1], extended)})
