"""Shared fixtures for speechrelay tests.

The fake backends record every lifecycle call in a shared ``log`` list so
tests can assert on the exact ordering of start/stop/dispose across
instances.
"""

import asyncio
from typing import Any

import httpx
import pytest
from pydantic import BaseModel

from speechrelay.backends.base import RecognitionBackend, SynthesisBackend
from speechrelay.backends.registry import BackendDescriptor, BackendRegistry
from speechrelay.events.event_bus import TextEventBus
from speechrelay.integrations.webhook import WebhookPoster
from speechrelay.settings import RecognitionSettings, SynthesisSettings, WebhookSettings
from speechrelay.stt.recognition_service import RecognitionService
from speechrelay.tts.synthesis_service import SynthesisService


# ---------------------------------------------------------------------------
# Fake backends
# ---------------------------------------------------------------------------


class FakeConfig(BaseModel):
    language: str = "en"


class KeyedConfig(BaseModel):
    key: str = ""
    region: str = "eu"


class FakeRecognitionBackend(RecognitionBackend):
    """Recognition backend driven by the test through ``emit_*`` helpers."""

    def __init__(self, receiver, log: list) -> None:
        super().__init__(receiver)
        self.log = log
        self.config: Any = None
        self.start_gate: asyncio.Event | None = None
        self.fail_start: str | None = None
        self.raise_on_start: Exception | None = None

    async def start(self, config: Any) -> None:
        self.log.append(("start", self))
        self.config = config
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.raise_on_start is not None:
            raise self.raise_on_start
        if self.fail_start is not None:
            self.receiver.on_stop(self.fail_start)
            return
        self.receiver.on_start()

    async def stop(self) -> None:
        self.log.append(("stop", self))
        self.receiver.on_stop()

    def dispose(self) -> None:
        self.log.append(("dispose", self))

    def emit_interim(self, text: str) -> None:
        self.receiver.on_interim(text)

    def emit_final(self, text: str) -> None:
        self.receiver.on_final(text)


class FakeSynthesisBackend(SynthesisBackend):
    """Synthesis backend that records what it "spoke"."""

    def __init__(self, receiver, log: list) -> None:
        super().__init__(receiver)
        self.log = log
        self.played: list[str] = []
        self.delays: dict[str, float] = {}
        self.failures: set[str] = set()
        self.start_gate: asyncio.Event | None = None

    async def start(self, config: Any) -> None:
        self.log.append(("start", self))
        if self.start_gate is not None:
            await self.start_gate.wait()
        self.receiver.on_start()

    async def play(self, text: str) -> None:
        self.log.append(("begin", text))
        await asyncio.sleep(self.delays.get(text, 0))
        if text in self.failures:
            self.log.append(("fail", text))
            raise RuntimeError(f"cannot say {text!r}")
        self.played.append(text)
        self.log.append(("end", text))

    async def stop(self) -> None:
        self.log.append(("stop", self))
        self.receiver.on_stop()

    def dispose(self) -> None:
        self.log.append(("dispose", self))


class FakeBackendFactory:
    """Backend factory that remembers every instance it built."""

    def __init__(self, backend_class: type) -> None:
        self.backend_class = backend_class
        self.instances: list = []
        self.log: list = []
        # Applied to each new instance before it is returned.
        self.configure = None

    def __call__(self, receiver):
        backend = self.backend_class(receiver, self.log)
        if self.configure is not None:
            self.configure(backend)
        self.instances.append(backend)
        return backend

    @property
    def latest(self):
        return self.instances[-1]


def make_registry(direction: str, factory: FakeBackendFactory) -> BackendRegistry:
    return BackendRegistry(
        direction,
        [
            BackendDescriptor("fake", factory, config_model=FakeConfig),
            BackendDescriptor(
                "keyed", factory, config_model=KeyedConfig, required=("key",)
            ),
        ],
    )


class Recorder:
    """Bus handler that collects everything published to it."""

    def __init__(self) -> None:
        self.events: list = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def texts(self) -> list[tuple[str, str]]:
        return [(e.type.value, e.value) for e in self.events]


async def settle(rounds: int = 10) -> None:
    """Let spawned tasks run for a few event loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bus() -> TextEventBus:
    """Return a fresh TextEventBus."""
    return TextEventBus()


@pytest.fixture
def recorder_on(bus: TextEventBus):
    """Return a function subscribing a new Recorder to a topic."""

    def _subscribe(topic: str) -> Recorder:
        recorder = Recorder()
        bus.subscribe(topic, recorder)
        return recorder

    return _subscribe


@pytest.fixture
def stt_factory() -> FakeBackendFactory:
    return FakeBackendFactory(FakeRecognitionBackend)


@pytest.fixture
def tts_factory() -> FakeBackendFactory:
    return FakeBackendFactory(FakeSynthesisBackend)


@pytest.fixture
def stt_registry(stt_factory: FakeBackendFactory) -> BackendRegistry:
    return make_registry("recognition", stt_factory)


@pytest.fixture
def tts_registry(tts_factory: FakeBackendFactory) -> BackendRegistry:
    return make_registry("synthesis", tts_factory)


@pytest.fixture
def stt_service(bus: TextEventBus, stt_registry: BackendRegistry) -> RecognitionService:
    """Return a RecognitionService wired to the fake recognition backend."""
    return RecognitionService(bus, stt_registry, RecognitionSettings(backend="fake"))


@pytest.fixture
def tts_service(bus: TextEventBus, tts_registry: BackendRegistry) -> SynthesisService:
    """Return a SynthesisService wired to the fake synthesis backend."""
    return SynthesisService(bus, tts_registry, SynthesisSettings(backend="fake"))


@pytest.fixture
def app(bus: TextEventBus, stt_service: RecognitionService, tts_service: SynthesisService):
    """Return a FastAPI test app with the bus, both services and a disabled webhook."""
    from fastapi import FastAPI

    from speechrelay.server.routes import router

    test_app = FastAPI()
    test_app.state.bus = bus
    test_app.state.stt_service = stt_service
    test_app.state.tts_service = tts_service
    test_app.state.webhook = WebhookPoster(bus, WebhookSettings())
    test_app.include_router(router)
    return test_app


@pytest.fixture
async def async_client(app):
    """Return an httpx AsyncClient configured with the test FastAPI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client
