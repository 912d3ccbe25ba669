"""FastAPI application factory for speechrelay.

Creates the shared :class:`TextEventBus`, the recognition and synthesis
services and the webhook poster, and manages their lifetime through the app
lifespan. ``create_app()`` is the single entry point used by the CLI and
``uvicorn`` alike.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from speechrelay import __version__
from speechrelay.events.event_bus import TextEventBus
from speechrelay.integrations.webhook import WebhookPoster
from speechrelay.server.routes import router
from speechrelay.settings import RelaySettings, load_settings
from speechrelay.stt.recognition_service import RecognitionService
from speechrelay.tts.synthesis_service import SynthesisService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise services on startup and stop them in reverse order on shutdown."""
    state = app.state
    logger.info("speechrelay starting up")
    await state.webhook.start()
    await state.tts_service.init()
    logger.info("Synthesis service ready (status=%s)", state.tts_service.status.value)
    await state.stt_service.init()
    logger.info("Recognition service ready (status=%s)", state.stt_service.status.value)
    try:
        yield
    finally:
        logger.info("speechrelay shutting down")
        await state.stt_service.close()
        await state.tts_service.close()
        await state.webhook.stop()
        logger.info("All services stopped")


def create_app(settings: RelaySettings | None = None) -> FastAPI:
    """Build and return a fully wired FastAPI application.

    The returned app has:
    * ``app.state.bus``: the shared :class:`TextEventBus`
    * ``app.state.stt_service``: the :class:`RecognitionService`
    * ``app.state.tts_service``: the :class:`SynthesisService`
    * ``app.state.webhook``: the :class:`WebhookPoster`
    """
    settings = settings or load_settings()
    bus = TextEventBus()

    app = FastAPI(title="speechrelay", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.bus = bus
    app.state.stt_service = RecognitionService(bus, settings=settings.stt)
    app.state.tts_service = SynthesisService(bus, settings=settings.tts)
    app.state.webhook = WebhookPoster(bus, settings.webhook)

    app.include_router(router)

    logger.info("FastAPI app created")
    return app
