"""Pydantic models for text events and service state."""

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TextEventType(str, Enum):
    """Whether a text event is provisional or completes an utterance."""

    INTERIM = "interim"
    FINAL = "final"


class TextEventSource(str, Enum):
    """Well-known producers of text events. Also used as bus topics."""

    STT = "stt"
    TRANSLATION = "translation"
    TEXTFIELD = "textfield"


class ServiceStatus(str, Enum):
    """Connection state of a recognition or synthesis service."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MuteState(str, Enum):
    """Mute state of the recognition direction."""

    UNMUTED = "unmuted"
    MUTED = "muted"
    PENDING_UNMUTE = "pending_unmute"


class TextEvent(BaseModel):
    """A single piece of text flowing through the text event bus.

    Immutable once created. ``source`` is a :class:`TextEventSource` for the
    built-in producers; any other string is accepted so that integrations can
    introduce their own sources without touching this module.
    """

    model_config = ConfigDict(frozen=True)

    source: TextEventSource | str
    type: TextEventType
    value: str

    @property
    def topic(self) -> str:
        """Bus topic this event is published on by default."""
        if isinstance(self.source, TextEventSource):
            return self.source.value
        return self.source

    @property
    def is_final(self) -> bool:
        return self.type == TextEventType.FINAL


class ServiceState(BaseModel):
    """Read-only snapshot of a service's observable state."""

    model_config = ConfigDict(frozen=True)

    service: str
    status: ServiceStatus = ServiceStatus.DISCONNECTED
    error: str = ""
    backend: str | None = None
    muted: MuteState | None = None


class ServiceNotice(BaseModel):
    """User-visible, non-fatal notification about a service failure."""

    model_config = ConfigDict(frozen=True)

    service: str
    message: str
    level: str = "error"
    timestamp: float = Field(default_factory=time.time)


# Topic carrying ServiceNotice objects.
NOTIFICATIONS_TOPIC = "notifications"

# Topic published (with no payload) when the live stream ends.
STREAM_ENDED_TOPIC = "stream.on_ended"


def state_topic(service: str) -> str:
    """Return the bus topic a service publishes its ServiceState on."""
    return f"{service}.state"
