"""Exception hierarchy for chatplay."""

from __future__ import annotations


class PlaygroundError(Exception):
    """Base exception for all chatplay errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(PlaygroundError):
    """Configuration validation or loading failed."""


class MalformedChunkError(PlaygroundError):
    """A streamed tool-call delta violated the chunk protocol.

    Raised when a new tool call arrives without a function name, or when
    a continuation arrives with no open tool call to continue.  Fatal to
    the current request, never to the session.
    """


class EmptyTranscriptError(PlaygroundError):
    """The transcript was empty where a last turn was required.

    This is an invariant violation (a bug), not a runtime condition.
    """


class RequestInProgressError(PlaygroundError):
    """``send()`` was invoked while another request is still in flight."""


class TransportError(PlaygroundError):
    """The completion transport failed.

    Wraps network, HTTP status and transport-level parse failures so the
    consumer can surface them without knowing the client library.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.retryable = retryable
