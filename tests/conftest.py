import asyncio
from dataclasses import dataclass, field

import pytest

from chatplay.config import Configuration
from chatplay.consumer import StreamConsumer
from chatplay.message import Role, Turn
from chatplay.provider import ModelProvider
from chatplay.streaming import CompleteMessage, TextDelta, ToolCallDelta
from chatplay.telemetry import TelemetryRecorder
from chatplay.transcript import TranscriptStore


# ---------------------------------------------------------------------------
# Stream script items
# ---------------------------------------------------------------------------

@dataclass
class Pause:
    """Stream script item: signal ``reached`` then block until ``release``."""

    reached: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that replays pre-queued responses. No network calls.

    Each queued response is a ``CompleteMessage``, an exception to raise
    from ``create_completion``, or a list of stream script items
    (chunks, exceptions to raise mid-stream, or :class:`Pause`).
    """

    system = "mock"

    def __init__(self):
        self.responses: list = []
        self.call_log: list[dict] = []
        self.closed_streams = 0

    async def create_completion(self, transcript, config):
        self.call_log.append({"transcript": transcript, "config": config})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, CompleteMessage):
            return response
        return self._stream(response)

    async def _stream(self, items):
        try:
            for item in items:
                if isinstance(item, Pause):
                    item.reached.set()
                    await item.release.wait()
                elif isinstance(item, BaseException):
                    raise item
                else:
                    yield item
        finally:
            self.closed_streams += 1


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class TickingClock(FakeClock):
    """Clock that advances a fixed step on every read."""

    def __init__(self, now: float = 1000.0, step: float = 10.0):
        super().__init__(now)
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


# ---------------------------------------------------------------------------
# Chunk builders
# ---------------------------------------------------------------------------

def text_chunks(*texts: str) -> list[TextDelta]:
    return [TextDelta(text=t) for t in texts]


def open_call(call_id: str, name: str, args: str = "", index: int = 0) -> ToolCallDelta:
    return ToolCallDelta(
        index=index, id=call_id, kind="function",
        function_name=name, arguments_fragment=args,
    )


def continue_call(args: str, index: int = 0) -> ToolCallDelta:
    return ToolCallDelta(index=index, arguments_fragment=args)


def pending_turn() -> Turn:
    return Turn(role=Role.ASSISTANT)


def user_turn(content: str = "What is the capital of France?") -> Turn:
    return Turn(role=Role.USER, content=content)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_consumer(mock_provider):
    """Factory fixture for consumers over the mock provider."""
    def _make(turns=None, config=None, clock=None, provider=None):
        store = TranscriptStore(
            turns if turns is not None else [user_turn()]
        )
        recorder = TelemetryRecorder(clock=clock or TickingClock())
        return StreamConsumer(
            provider=provider or mock_provider,
            config=config or Configuration(api_key="test-key"),
            transcript=store,
            telemetry=recorder,
        )
    return _make
