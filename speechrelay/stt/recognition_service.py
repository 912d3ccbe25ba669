"""Recognition orchestrator: backend results in, text events out.

Every interim or final result, whether it comes from the active backend or
from an out-of-band source such as a typed caption, runs through the same
pipeline:

    normalizer -> word replacements -> mute gate -> publish on the bus

Results from the same backend instance are published in the order the
backend emitted them; nothing in the pipeline suspends.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from speechrelay.backends.base import RecognitionBackend
from speechrelay.backends.registry import BackendRegistry, default_recognition_registry
from speechrelay.events.event_bus import TextEventBus
from speechrelay.events.types import (
    MuteState,
    ServiceState,
    TextEvent,
    TextEventSource,
    TextEventType,
)
from speechrelay.service import BackendService, ServiceReceiver
from speechrelay.settings import RecognitionSettings
from speechrelay.stt.mute import MuteStateMachine
from speechrelay.text.replacements import WordReplacer

logger = logging.getLogger(__name__)

TextNormalizer = Callable[[str], str]


class RecognitionReceiver(ServiceReceiver):
    """Per-instance receiver that also forwards recognition results."""

    def on_interim(self, text: str) -> None:
        self._service._handle_result(self._backend, text, TextEventType.INTERIM)

    def on_final(self, text: str) -> None:
        self._service._handle_result(self._backend, text, TextEventType.FINAL)


class RecognitionService(BackendService[RecognitionBackend, RecognitionSettings]):
    """Owns the recognition backend, the mute machine and the replacement cache."""

    receiver_class = RecognitionReceiver

    def __init__(
        self,
        bus: TextEventBus,
        registry: BackendRegistry | None = None,
        settings: RecognitionSettings | None = None,
        *,
        normalizer: TextNormalizer | None = None,
        source: TextEventSource | str = TextEventSource.STT,
    ) -> None:
        settings = settings or RecognitionSettings()
        super().__init__(
            "stt", bus, registry or default_recognition_registry(), settings
        )
        self._source = source
        self._normalizer = normalizer
        self._mute = MuteStateMachine()
        self._replacer = WordReplacer(
            settings.replace_words, settings.replace_words_ignore_case
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def mute_state(self) -> MuteState:
        return self._mute.state

    @property
    def is_muted(self) -> bool:
        return self._mute.is_muted

    @property
    def last_message(self) -> tuple[str, bool]:
        """``(value, is_interim)`` of the last processed result."""
        return self._mute.last_message

    @property
    def state(self) -> ServiceState:
        return super().state.model_copy(update={"muted": self._mute.state})

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def toggle_mute(self) -> MuteState:
        """Toggle mute; muting mid-sentence finalizes it with the cancel marker."""
        state = self._mute.toggle(self._emit_final)
        self._publish_state()
        return state

    def process_external_message(self, event: TextEvent | Mapping[str, Any]) -> None:
        """Route an out-of-band interim/final text through the pipeline.

        Accepts a :class:`TextEvent` or a mapping with ``type`` and
        ``value``; anything without a type or with an empty value is ignored.
        """
        if isinstance(event, TextEvent):
            kind, value = event.type, event.value
        else:
            kind, value = event.get("type"), event.get("value")
        if not kind or not value:
            return
        try:
            kind = TextEventType(kind)
        except ValueError:
            logger.warning("Ignoring external message with unknown type %r", kind)
            return
        self._process(str(value), kind)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _handle_result(self, backend: RecognitionBackend, text: str, kind: TextEventType) -> None:
        if not self._is_active(backend):
            return
        self._process(text, kind)

    def _process(self, text: str, kind: TextEventType) -> None:
        value = self._normalize(text)
        value = self._replacer.apply(value, self._settings.replace_words_preserve_case)
        if kind == TextEventType.FINAL:
            self._emit_final(value)
            return
        if self._mute.should_publish(TextEventType.INTERIM):
            self._publish(value, TextEventType.INTERIM)
        self._mute.observe(value, True)

    def _emit_final(self, value: str) -> None:
        before = self._mute.state
        if self._mute.should_publish(TextEventType.FINAL):
            self._publish(value, TextEventType.FINAL)
        self._mute.observe(value, False)
        self._mute.on_final_processed()
        if self._mute.state != before:
            self._publish_state()

    def _normalize(self, text: str) -> str:
        if self._normalizer is None:
            return text
        try:
            return self._normalizer(text)
        except Exception:
            logger.warning("Text normalizer failed; using raw text", exc_info=True)
            return text

    def _publish(self, value: str, kind: TextEventType) -> None:
        event = TextEvent(source=self._source, type=kind, value=value)
        self._bus.publish_text(event)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _on_shutdown(self) -> None:
        # A half-spoken sentence is finalized rather than silently lost.
        self._mute.cancel_in_flight(self._emit_final)

    def _on_settings_changed(
        self, old: RecognitionSettings, new: RecognitionSettings
    ) -> None:
        if (
            old.replace_words != new.replace_words
            or old.replace_words_ignore_case != new.replace_words_ignore_case
        ):
            self._replacer.rebuild(new.replace_words, new.replace_words_ignore_case)
            logger.info("Recognition replacement dictionary rebuilt")
