"""Per-request latency and throughput tracking.

All times are milliseconds from the recorder's clock.  Derived metrics
stay ``None`` until the first unit has arrived.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class TelemetrySample:
    """Timing accumulator for one in-flight request."""

    start_time: float
    first_unit_time: float | None = None
    last_unit_time: float | None = None
    unit_count: int | None = None
    end_time: float | None = None

    @property
    def finished(self) -> bool:
        return self.end_time is not None

    @property
    def time_to_first_unit(self) -> float | None:
        """Milliseconds between request start and the first unit."""
        if self.first_unit_time is None:
            return None
        return self.first_unit_time - self.start_time

    @property
    def units_per_second(self) -> float | None:
        if self.first_unit_time is None or self.last_unit_time is None:
            return None
        elapsed_ms = self.last_unit_time - self.first_unit_time
        if elapsed_ms <= 0:
            return None
        return (self.unit_count or 0) / (elapsed_ms / 1000.0)


TelemetryListener = Callable[[TelemetrySample | None], None]


class TelemetryRecorder:
    """Creates and updates :class:`TelemetrySample` handles.

    Listeners receive a copy of the current sample after every change, or
    ``None`` once the sample has been cleared.

    Args:
        clock: Zero-argument callable returning the current time in
            milliseconds.  Defaults to a monotonic clock.
    """

    def __init__(self, clock: Callable[[], float] = _monotonic_ms):
        self._clock = clock
        self._current: TelemetrySample | None = None
        self._listeners: list[TelemetryListener] = []

    @property
    def current(self) -> TelemetrySample | None:
        return self._current

    def subscribe(self, listener: TelemetryListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> TelemetrySample:
        """Begin a new sample, replacing any previous one."""
        self._current = TelemetrySample(start_time=self._clock())
        self._notify()
        return self._current

    def record_unit(self, sample: TelemetrySample) -> None:
        if sample.finished:
            return
        now = self._clock()
        if sample.first_unit_time is None:
            sample.first_unit_time = now
        if sample.last_unit_time is None or now > sample.last_unit_time:
            sample.last_unit_time = now
        sample.unit_count = (sample.unit_count or 0) + 1
        self._notify_if_current(sample)

    def finish(self, sample: TelemetrySample) -> None:
        if sample.finished:
            return
        sample.end_time = self._clock()
        self._notify_if_current(sample)

    def clear(self) -> None:
        """Discard the current sample."""
        self._current = None
        self._notify()

    def _notify_if_current(self, sample: TelemetrySample) -> None:
        if sample is self._current:
            self._notify()

    def _notify(self) -> None:
        snapshot = replace(self._current) if self._current is not None else None
        for listener in list(self._listeners):
            listener(snapshot)
