from speechrelay.events.event_bus import SourceSubscription, TextEventBus
from speechrelay.events.types import (
    MuteState,
    ServiceNotice,
    ServiceState,
    ServiceStatus,
    TextEvent,
    TextEventSource,
    TextEventType,
)

__all__ = [
    "MuteState",
    "ServiceNotice",
    "ServiceState",
    "ServiceStatus",
    "SourceSubscription",
    "TextEvent",
    "TextEventBus",
    "TextEventSource",
    "TextEventType",
]
