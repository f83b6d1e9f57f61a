from chatplay.config import Configuration, configure_logging, load_initial_state
from chatplay.consumer import ConsumerState, SendResult, StreamConsumer
from chatplay.errors import (
    ConfigurationError,
    EmptyTranscriptError,
    MalformedChunkError,
    PlaygroundError,
    RequestInProgressError,
    TransportError,
)
from chatplay.instrumentation import instrument, uninstrument
from chatplay.message import ImagePart, Role, TextPart, ToolCall, Turn
from chatplay.provider import ModelProvider, OpenAIProvider
from chatplay.streaming import (
    CompleteMessage,
    TextDelta,
    ToolCallDelta,
    merge_chunk,
    merge_message,
)
from chatplay.telemetry import TelemetryRecorder, TelemetrySample
from chatplay.tools import ToolDefinition
from chatplay.transcript import TranscriptStore

__all__ = [
    "CompleteMessage",
    "Configuration",
    "ConfigurationError",
    "ConsumerState",
    "EmptyTranscriptError",
    "ImagePart",
    "MalformedChunkError",
    "ModelProvider",
    "OpenAIProvider",
    "PlaygroundError",
    "RequestInProgressError",
    "Role",
    "SendResult",
    "StreamConsumer",
    "TelemetryRecorder",
    "TelemetrySample",
    "TextDelta",
    "TextPart",
    "ToolCall",
    "ToolCallDelta",
    "ToolDefinition",
    "TranscriptStore",
    "TransportError",
    "Turn",
    "configure_logging",
    "instrument",
    "load_initial_state",
    "merge_chunk",
    "merge_message",
    "uninstrument",
]
