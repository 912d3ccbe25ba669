"""Capability interfaces implemented by recognition and synthesis backends.

A backend is constructed with a *receiver* and reports everything through
it. The orchestrating service gives every backend instance its own receiver,
which lets the service ignore callbacks from instances it already replaced.
"""

from abc import ABC, abstractmethod
from typing import Any, Protocol


class RecognitionReceiver(Protocol):
    """Callbacks a recognition backend invokes on its owner."""

    def on_start(self) -> None: ...

    def on_interim(self, text: str) -> None: ...

    def on_final(self, text: str) -> None: ...

    def on_stop(self, error: str | None = None) -> None: ...


class SynthesisReceiver(Protocol):
    """Callbacks a synthesis backend invokes on its owner."""

    def on_start(self) -> None: ...

    def on_stop(self, error: str | None = None) -> None: ...


class RecognitionBackend(ABC):
    """Abstract base class for speech recognition backends.

    ``start`` must eventually call exactly one of ``on_start`` (success) or
    ``on_stop(error)`` (failure) before emitting any interim or final text.
    ``stop`` is idempotent, safe before ``start`` has completed, and must
    eventually lead to ``on_stop()`` with no error when user-initiated.
    ``dispose`` is only called after ``stop`` has settled.
    """

    def __init__(self, receiver: RecognitionReceiver) -> None:
        self.receiver = receiver

    @abstractmethod
    async def start(self, config: Any) -> None:
        """Begin recognition with the validated backend *config*."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop recognition."""

    def dispose(self) -> None:
        """Release resources. Default: nothing to release."""


class SynthesisBackend(ABC):
    """Abstract base class for speech synthesis backends.

    ``play`` may be called again before a previous call finished its I/O;
    adapters do not need to serialize those calls themselves because the
    synthesis service only ever awaits one ``play`` at a time per instance.
    """

    def __init__(self, receiver: SynthesisReceiver) -> None:
        self.receiver = receiver

    @abstractmethod
    async def start(self, config: Any) -> None:
        """Prepare the engine with the validated backend *config*."""

    @abstractmethod
    async def play(self, text: str) -> None:
        """Speak *text*. Raising marks only this request as failed."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the engine and any in-progress playback."""

    def dispose(self) -> None:
        """Release resources. Default: nothing to release."""
