"""Synthesis orchestrator: final text events in, ordered playback out.

Listens to one configurable text source (plus, optionally, the manual text
field), rewrites final events through its own replacement dictionary, strips
markup characters and queues the result on the active backend's
:class:`PlaybackQueue`.
"""

import logging
import re
from typing import Any

from speechrelay.backends.base import SynthesisBackend
from speechrelay.backends.registry import BackendRegistry, default_synthesis_registry
from speechrelay.events.event_bus import SourceSubscription, TextEventBus
from speechrelay.events.types import TextEvent, TextEventSource, TextEventType
from speechrelay.service import BackendService
from speechrelay.settings import SynthesisSettings
from speechrelay.text.replacements import WordReplacer
from speechrelay.tts.playback_queue import PlaybackQueue, PlaybackRequest

logger = logging.getLogger(__name__)

# Characters that would be read as markup (SSML) by some engines.
_MARKUP_CHARS = re.compile(r"[<>]")


class SynthesisService(BackendService[SynthesisBackend, SynthesisSettings]):
    """Owns the synthesis backend and its playback queue."""

    def __init__(
        self,
        bus: TextEventBus,
        registry: BackendRegistry | None = None,
        settings: SynthesisSettings | None = None,
    ) -> None:
        settings = settings or SynthesisSettings()
        super().__init__("tts", bus, registry or default_synthesis_registry(), settings)
        self._replacer = WordReplacer(
            settings.replace_words, settings.replace_words_ignore_case
        )
        self._queue: PlaybackQueue | None = None
        self._source = SourceSubscription(bus, self._on_text)
        self._input = SourceSubscription(bus, self._on_text)

    @property
    def source(self) -> str | None:
        return self._source.topic

    @property
    def queue(self) -> PlaybackQueue | None:
        """Playback queue of the active backend, if any."""
        return self._queue

    async def init(self) -> None:
        self._subscribe_sources(self._settings)
        await super().init()

    async def close(self) -> None:
        self._source.close()
        self._input.close()
        await super().close()

    def play(self, text: str) -> bool:
        """Queue *text* for playback; returns False if it was dropped."""
        value = self.prepare_text(text)
        if not value:
            return False
        queue = self._queue
        if queue is None:
            logger.debug("No active synthesis backend; dropping %r", value[:80])
            return False
        queue.submit(value)
        return True

    def prepare_text(self, text: str) -> str:
        """Apply replacements and strip markup characters."""
        value = self._replacer.apply(text, self._settings.replace_words_preserve_case)
        return _MARKUP_CHARS.sub("", value).strip()

    # ------------------------------------------------------------------
    # Bus handler
    # ------------------------------------------------------------------

    def _on_text(self, event: Any) -> None:
        if not isinstance(event, TextEvent) or event.type != TextEventType.FINAL:
            return
        self.play(event.value)

    def _subscribe_sources(self, settings: SynthesisSettings) -> None:
        self._source.switch(settings.source)
        textfield = TextEventSource.TEXTFIELD.value
        # The text field may already be the main source; never listen to it twice.
        wants_input = settings.input_field and settings.source != textfield
        self._input.switch(textfield if wants_input else None)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _on_backend_attached(self, backend: SynthesisBackend) -> None:
        self._queue = PlaybackQueue(backend, on_error=self._on_playback_error)

    def _on_backend_started(self, backend: SynthesisBackend) -> None:
        if self._queue is not None:
            self._queue.start()

    def _on_backend_detached(self, backend: SynthesisBackend) -> None:
        if self._queue is not None:
            self._queue.close()
            self._queue = None

    def _on_playback_error(self, request: PlaybackRequest, exc: Exception) -> None:
        self._notify(f"Playback failed: {exc}")

    def _on_settings_changed(self, old: SynthesisSettings, new: SynthesisSettings) -> None:
        if (
            old.replace_words != new.replace_words
            or old.replace_words_ignore_case != new.replace_words_ignore_case
        ):
            self._replacer.rebuild(new.replace_words, new.replace_words_ignore_case)
            logger.info("Synthesis replacement dictionary rebuilt")
        if (old.source, old.input_field) != (new.source, new.input_field):
            # The switch may drop at most the event in flight (see SourceSubscription).
            self._subscribe_sources(new)
            logger.info("Synthesis source switched to '%s'", new.source)
