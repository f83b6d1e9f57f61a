"""Observable, ordered store of conversation turns."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from chatplay.errors import EmptyTranscriptError
from chatplay.message import ROLES, ImagePart, Role, TextPart, ToolCall, Turn

logger = logging.getLogger(__name__)

Transcript = tuple[Turn, ...]
TranscriptListener = Callable[[Transcript], None]


class TranscriptStore:
    """Holds the transcript and notifies subscribers on every mutation.

    Each mutation replaces the stored tuple with a new one and hands that
    tuple to every listener, so listeners always see an immutable value.
    Both the stream consumer and direct user edits go through this class.

    Args:
        turns: Initial turns, in conversation order.
    """

    def __init__(self, turns: Iterable[Turn] = ()):
        self._turns: Transcript = tuple(turns)
        self._listeners: list[TranscriptListener] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    def snapshot(self) -> Transcript:
        return self._turns

    def subscribe(self, listener: TranscriptListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Core mutations
    # ------------------------------------------------------------------

    def append(self, turn: Turn) -> None:
        self._commit((*self._turns, turn))

    def last(self) -> Turn:
        if not self._turns:
            raise EmptyTranscriptError("Transcript is empty")
        return self._turns[-1]

    def replace_last(self, turn: Turn) -> None:
        if not self._turns:
            raise EmptyTranscriptError("Cannot replace the last turn of an empty transcript")
        self._commit((*self._turns[:-1], turn))

    def insert_at(self, index: int, turn: Turn) -> None:
        if not 0 <= index <= len(self._turns):
            raise IndexError(f"Insert index {index} out of range")
        self._commit((*self._turns[:index], turn, *self._turns[index:]))

    def replace_at(self, index: int, turn: Turn) -> None:
        index = self._check_index(index)
        self._commit((*self._turns[:index], turn, *self._turns[index + 1:]))

    def remove_at(self, index: int) -> None:
        index = self._check_index(index)
        self._commit((*self._turns[:index], *self._turns[index + 1:]))

    def clear(self) -> None:
        self._commit(())

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    def add_user_turn(self) -> None:
        self.append(Turn(role=Role.USER, content=""))

    def cycle_role(self, index: int) -> None:
        """Rotate the role of the turn at *index* (system, user, assistant)."""
        turn = self._turns[self._check_index(index)]
        next_role = ROLES[(ROLES.index(turn.role) + 1) % len(ROLES)]
        update: dict = {"role": next_role}
        if next_role is not Role.ASSISTANT:
            update["tool_calls"] = None
        self.replace_at(index, turn.model_copy(update=update))

    def add_tool_call(self, index: int) -> None:
        """Append a blank tool call to the assistant turn at *index*."""
        turn = self._turns[self._check_index(index)]
        if turn.role is not Role.ASSISTANT:
            raise ValueError("Tool calls can only be added to assistant turns")
        calls = turn.tool_calls or ()
        blank = ToolCall(id=f"tool_call_{len(calls)}")
        self.replace_at(index, turn.model_copy(update={"tool_calls": (*calls, blank)}))

    def remove_tool_call(self, index: int, call_index: int) -> None:
        turn = self._turns[self._check_index(index)]
        calls = list(turn.tool_calls or ())
        del calls[call_index]
        self.replace_at(
            index, turn.model_copy(update={"tool_calls": tuple(calls) or None})
        )

    def edit_tool_call(
        self,
        index: int,
        call_index: int,
        *,
        function_name: str | None = None,
        arguments_text: str | None = None,
    ) -> None:
        turn = self._turns[self._check_index(index)]
        calls = list(turn.tool_calls or ())
        update = {}
        if function_name is not None:
            update["function_name"] = function_name
        if arguments_text is not None:
            update["arguments_text"] = arguments_text
        calls[call_index] = calls[call_index].model_copy(update=update)
        self.replace_at(index, turn.model_copy(update={"tool_calls": tuple(calls)}))

    def edit_content(self, index: int, text: str, *, part_index: int | None = None) -> None:
        """Set the text of the turn at *index*.

        With *part_index*, edit that text part of a multi-part turn instead.
        """
        turn = self._turns[self._check_index(index)]
        if part_index is None:
            if isinstance(turn.content, tuple):
                raise ValueError("Multi-part content needs a part_index")
            self.replace_at(index, turn.model_copy(update={"content": text}))
            return
        parts = self._content_parts(turn)
        if not isinstance(parts[part_index], TextPart):
            raise ValueError(f"Content part {part_index} is not text")
        parts[part_index] = TextPart(text=text)
        self.replace_at(index, turn.model_copy(update={"content": tuple(parts)}))

    def add_image(self, index: int, url: str = "") -> None:
        """Attach an image to the user turn at *index*.

        Plain string content becomes a text part followed by the image.
        """
        turn = self._turns[self._check_index(index)]
        if turn.role is not Role.USER:
            raise ValueError("Images can only be attached to user turns")
        if isinstance(turn.content, tuple):
            parts = (*turn.content, ImagePart(url=url))
        else:
            parts = (TextPart(text=turn.content or ""), ImagePart(url=url))
        self.replace_at(index, turn.model_copy(update={"content": parts}))

    def edit_image(self, index: int, part_index: int, url: str) -> None:
        turn = self._turns[self._check_index(index)]
        parts = self._content_parts(turn)
        if not isinstance(parts[part_index], ImagePart):
            raise ValueError(f"Content part {part_index} is not an image")
        parts[part_index] = ImagePart(url=url)
        self.replace_at(index, turn.model_copy(update={"content": tuple(parts)}))

    def remove_content_part(self, index: int, part_index: int) -> None:
        turn = self._turns[self._check_index(index)]
        parts = self._content_parts(turn)
        del parts[part_index]
        self.replace_at(index, turn.model_copy(update={"content": tuple(parts)}))

    # ------------------------------------------------------------------

    @staticmethod
    def _content_parts(turn: Turn) -> list:
        if not isinstance(turn.content, tuple):
            raise ValueError("Turn content is not multi-part")
        return list(turn.content)

    def _check_index(self, index: int) -> int:
        size = len(self._turns)
        if not -size <= index < size:
            raise IndexError(f"Turn index {index} out of range")
        return index % size

    def _commit(self, turns: Transcript) -> None:
        self._turns = turns
        for listener in list(self._listeners):
            listener(turns)
