"""Mute state machine for the recognition direction.

States: ``unmuted`` -> ``muted`` -> (``pending_unmute``) -> ``unmuted``.

``pending_unmute`` covers the case where the user unmutes while a sentence
is still being spoken: the interim results of that sentence stay suppressed
and the state resolves to ``unmuted`` once its final result arrives.
"""

import logging
from collections.abc import Callable

from speechrelay.config import CANCELLED_UTTERANCE_MARKER
from speechrelay.events.types import MuteState, TextEventType

logger = logging.getLogger(__name__)


class MuteStateMachine:
    """Tracks mute state and the last recognition event it observed.

    All methods are synchronous; on the single-threaded event loop each call
    is atomic, so no recognition event can be processed between a cancel and
    the state flip performed by :meth:`toggle`.
    """

    def __init__(self, marker: str = CANCELLED_UTTERANCE_MARKER) -> None:
        self._state: MuteState = MuteState.UNMUTED
        self._last_value: str = ""
        self._last_interim: bool = False
        self._marker = marker

    @property
    def state(self) -> MuteState:
        return self._state

    @property
    def is_muted(self) -> bool:
        """True while publication is (at least partially) suppressed."""
        return self._state != MuteState.UNMUTED

    @property
    def last_message(self) -> tuple[str, bool]:
        """``(value, is_interim)`` of the last observed event."""
        return self._last_value, self._last_interim

    @property
    def in_flight(self) -> bool:
        """Whether the last observed event left an utterance unfinished."""
        return self._last_interim

    def should_publish(self, kind: TextEventType) -> bool:
        """Publish gate for a recognition event of the given kind."""
        if self._state == MuteState.UNMUTED:
            return True
        if self._state == MuteState.PENDING_UNMUTE:
            return kind == TextEventType.FINAL
        return False

    def observe(self, value: str, is_interim: bool) -> None:
        """Remember the last processed event, whether or not it was published."""
        self._last_value = value
        self._last_interim = is_interim

    def cancel_in_flight(self, emit_final: Callable[[str], None]) -> bool:
        """Finalize an unfinished utterance with the cancellation marker.

        Calls *emit_final* with the marker when the last observed event was
        interim, then clears the memory. Returns whether a marker was emitted.
        """
        if not self._last_interim:
            return False
        logger.debug("Cancelling in-flight utterance %r", self._last_value)
        emit_final(self._marker)
        self.observe("", False)
        return True

    def toggle(self, emit_final: Callable[[str], None]) -> MuteState:
        """Advance the mute state as a user toggle would and return it."""
        if self._state == MuteState.UNMUTED:
            self.cancel_in_flight(emit_final)
            self._state = MuteState.MUTED
        elif self._state == MuteState.MUTED:
            if self._last_interim:
                self._state = MuteState.PENDING_UNMUTE
            else:
                self._state = MuteState.UNMUTED
        else:
            self._state = MuteState.UNMUTED
        logger.info("Recognition mute state: %s", self._state.value)
        return self._state

    def on_final_processed(self) -> None:
        """Resolve a pending unmute once a final event went through."""
        if self._state == MuteState.PENDING_UNMUTE:
            self._state = MuteState.UNMUTED
            logger.info("Pending unmute resolved")
