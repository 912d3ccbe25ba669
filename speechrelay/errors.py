"""Error taxonomy for the speech-event pipeline.

Backend-originated failures are recovered at the service boundary and turned
into ``on_stop(message)`` calls plus a user-visible notice; none of these
exceptions is meant to reach the top level of the process.
"""


class SpeechRelayError(Exception):
    """Base class for all speechrelay errors."""


class ConfigurationError(SpeechRelayError):
    """A required backend option is missing or empty.

    Detected before a backend is started and never retried automatically.
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Option '{field}' is missing")


class UnknownBackendError(ConfigurationError):
    """The configured backend identifier has no usable implementation."""

    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__("backend", f"Backend '{backend}' is unavailable")


class BackendRuntimeError(SpeechRelayError):
    """A backend adapter failed while starting, running or playing."""

    def __init__(self, backend: str, message: str) -> None:
        self.backend = backend
        super().__init__(f"{backend}: {message}")


class TransientDeliveryError(SpeechRelayError):
    """A text event bus subscriber raised while handling an event."""

    def __init__(self, topic: str, subscription_id: str, cause: BaseException) -> None:
        self.topic = topic
        self.subscription_id = subscription_id
        self.cause = cause
        super().__init__(
            f"Subscriber {subscription_id} on topic '{topic}' failed: {cause!r}"
        )
