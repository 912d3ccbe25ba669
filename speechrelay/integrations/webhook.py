"""Posts final text events to a chat webhook (Discord-style payload).

An ordinary text event bus subscriber: it listens to a configurable source
(and optionally the manual text field) and forwards non-empty final events.
Delivery failures are logged and reported as notices, never raised.
"""

import asyncio
import logging
from typing import Any

import httpx

from speechrelay.config import WEBHOOK_TIMEOUT
from speechrelay.events.event_bus import SourceSubscription, TextEventBus
from speechrelay.events.types import (
    NOTIFICATIONS_TOPIC,
    ServiceNotice,
    TextEvent,
    TextEventSource,
    TextEventType,
)
from speechrelay.settings import WebhookSettings

logger = logging.getLogger(__name__)


class WebhookPoster:
    """Forwards final text events to an HTTP webhook."""

    def __init__(self, bus: TextEventBus, settings: WebhookSettings | None = None) -> None:
        self._bus = bus
        self._settings = settings or WebhookSettings()
        self._client: httpx.AsyncClient | None = None
        self._source = SourceSubscription(bus, self._on_text)
        self._input = SourceSubscription(bus, self._on_text)
        self._tasks: set[asyncio.Task] = set()
        # Posts are sent one at a time, in the order the events arrived.
        self._send_lock = asyncio.Lock()

    async def start(self) -> None:
        """Create the HTTP client and subscribe to the configured sources."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT)
        self._resubscribe()
        logger.info(
            "Webhook poster started (enabled=%s, source=%s)",
            self._settings.enabled,
            self._settings.source,
        )

    async def stop(self) -> None:
        """Unsubscribe, let in-flight posts finish, close the client."""
        self._source.close()
        self._input.close()
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def drain(self) -> None:
        """Wait until every post that is already scheduled has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def is_enabled(self) -> bool:
        return self._settings.enabled and bool(self._settings.url)

    def update_settings(self, settings: WebhookSettings) -> None:
        self._settings = settings
        self._resubscribe()

    async def post(self, text: str) -> bool:
        """POST *text* to the webhook. Returns True on a 2xx response."""
        if not self.is_enabled or self._client is None:
            return False
        payload = {
            "content": text,
            "embeds": None,
            "username": self._settings.username,
            "avatar_url": self._settings.avatar_url,
            "attachments": [],
        }
        try:
            async with self._send_lock:
                response = await self._client.post(self._settings.url, json=payload)
            response.raise_for_status()
            return True
        except httpx.HTTPError as exc:
            logger.warning("Webhook post failed: %s", exc)
            self._bus.publish(
                NOTIFICATIONS_TOPIC,
                ServiceNotice(
                    service="webhook",
                    message=f"Could not dispatch webhook: '{exc}'",
                ),
            )
            return False

    def _resubscribe(self) -> None:
        self._source.switch(self._settings.source)
        textfield = TextEventSource.TEXTFIELD.value
        wants_input = self._settings.input_field and self._settings.source != textfield
        self._input.switch(textfield if wants_input else None)

    def _on_text(self, event: Any) -> None:
        if not isinstance(event, TextEvent) or event.type != TextEventType.FINAL:
            return
        if not event.value or not self.is_enabled:
            return
        task = asyncio.get_running_loop().create_task(self.post(event.value))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
