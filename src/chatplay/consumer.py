import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Any

from chatplay.config import Configuration
from chatplay.errors import (
    MalformedChunkError,
    PlaygroundError,
    RequestInProgressError,
    TransportError,
)
from chatplay.instrumentation import (
    completion_span,
    record_error,
    record_outcome,
    record_telemetry,
)
from chatplay.message import Role, Turn
from chatplay.provider import ModelProvider
from chatplay.streaming import CompleteMessage, merge_chunk, merge_message
from chatplay.telemetry import TelemetryListener, TelemetryRecorder, TelemetrySample
from chatplay.transcript import TranscriptListener, TranscriptStore

logger = logging.getLogger(__name__)


class ConsumerState(Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    FINALIZING = "finalizing"


@dataclass
class SendResult:
    """The outcome of a single ``StreamConsumer.send()`` call.

    ``status`` is ``"completed"``, ``"cancelled"`` or ``"failed"``.  In
    every case ``turn`` is the assistant turn as last merged.
    """

    status: str
    turn: Turn | None
    error: PlaygroundError | None = None
    telemetry: TelemetrySample | None = None


class StreamConsumer:
    """Drives one completion request at a time into the transcript.

    ``send()`` appends a placeholder assistant turn, asks the provider for
    a completion and folds the response into that turn, either in one
    replacement (non-streamed) or chunk by chunk.  Every chunk results in
    exactly one transcript update, applied in arrival order, always to
    whatever turn is last at that moment.

    ``cancel()`` aborts the in-flight request.  Cancellation truncates:
    whatever was merged so far stays in the transcript.  Transport and
    malformed-chunk errors end the request the same way, and are
    reported on the result and on ``error``.

    Args:
        provider: Transport used to create completions.
        config: Request configuration; may be replaced between sends.
        transcript: Store to read the request from and merge into.
        telemetry: Recorder for latency and throughput.
    """

    def __init__(
        self,
        provider: ModelProvider,
        config: Configuration | None = None,
        transcript: TranscriptStore | None = None,
        telemetry: TelemetryRecorder | None = None,
    ):
        self.provider = provider
        self.config = config or Configuration()
        self.transcript = transcript if transcript is not None else TranscriptStore()
        self.telemetry = telemetry or TelemetryRecorder()
        self.error: PlaygroundError | None = None
        self._state = ConsumerState.IDLE
        self._task: asyncio.Task | None = None
        self._cancel_requested = False

    @property
    def state(self) -> ConsumerState:
        return self._state

    def on_transcript_changed(self, listener: TranscriptListener) -> Callable[[], None]:
        return self.transcript.subscribe(listener)

    def on_telemetry_changed(self, listener: TelemetryListener) -> Callable[[], None]:
        return self.telemetry.subscribe(listener)

    def dismiss_error(self) -> None:
        self.error = None

    def cancel(self) -> bool:
        """Abort the in-flight request. Returns False when idle.

        A request whose ``send()`` has been called but not yet awaited is
        cancelled before the provider is contacted.
        """
        if self._state is ConsumerState.IDLE:
            return False
        logger.info("Cancelling in-flight completion")
        self._cancel_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        return True

    def send(self) -> Coroutine[Any, Any, SendResult]:
        """Request a completion for the current transcript.

        The request snapshot, the placeholder turn and the move out of
        ``IDLE`` happen on the call itself; the returned coroutine runs
        the request and must be awaited.

        Raises:
            RequestInProgressError: If a request is already in flight.
        """
        if self._state is not ConsumerState.IDLE:
            raise RequestInProgressError("A completion request is already in flight")

        request = self.transcript.snapshot()
        self.transcript.append(Turn(role=Role.ASSISTANT))
        sample = self.telemetry.start()
        self.error = None
        self._cancel_requested = False
        self._set_state(ConsumerState.SENDING)
        return self._run(request, sample)

    async def _run(self, request: tuple[Turn, ...], sample: TelemetrySample) -> SendResult:
        async with completion_span(
            self.provider.system, self.config.model, self.config.stream,
        ) as span:
            self._task = asyncio.create_task(self._consume(request, sample))
            if self._cancel_requested:
                self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                if not self._cancel_requested:
                    raise
                status = "cancelled"
                logger.info("Completion cancelled; keeping partial response")
            except (TransportError, MalformedChunkError) as e:
                if self._cancel_requested and isinstance(e, TransportError):
                    # The abort surfaced as a network failure.
                    status = "cancelled"
                    logger.info("Completion cancelled; keeping partial response")
                else:
                    status = "failed"
                    self.error = e
                    record_error(span, e)
                    logger.error(f"Completion failed: {e}")
            else:
                status = "completed"
            finally:
                self._task = None
                self.telemetry.finish(sample)
                self._set_state(ConsumerState.IDLE)
                record_telemetry(span, sample)
            record_outcome(span, status)

        return SendResult(
            status=status,
            turn=self.transcript[-1] if len(self.transcript) else None,
            error=self.error,
            telemetry=sample,
        )

    # ------------------------------------------------------------------
    # Consumption loop
    # ------------------------------------------------------------------

    async def _consume(self, request: tuple[Turn, ...], sample: TelemetrySample) -> None:
        try:
            response = await self.provider.create_completion(request, self.config)
        except PlaygroundError:
            raise
        except Exception as e:
            raise TransportError(f"Completion request failed: {e}") from e

        if isinstance(response, CompleteMessage):
            self._set_state(ConsumerState.FINALIZING)
            self.transcript.replace_last(merge_message(self.transcript.last(), response))
            return

        iterator = aiter(response)
        try:
            while True:
                try:
                    chunk = await anext(iterator)
                except StopAsyncIteration:
                    break
                except PlaygroundError:
                    raise
                except Exception as e:
                    raise TransportError(f"Stream failed: {e}") from e

                if self._state is ConsumerState.SENDING:
                    self._set_state(ConsumerState.STREAMING)
                self.transcript.replace_last(merge_chunk(self.transcript.last(), chunk))
                self.telemetry.record_unit(sample)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    def _set_state(self, state: ConsumerState) -> None:
        if state is not self._state:
            logger.debug(f"Consumer state {self._state.value} -> {state.value}")
            self._state = state
