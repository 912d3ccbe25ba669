"""Single-active-backend lifecycle shared by the recognition and synthesis services.

Each service owns at most one backend instance. Starting always stops and
disposes the previous instance before the new one is constructed, and every
instance gets its own receiver so that callbacks from an instance that has
since been replaced are recognised as stale and ignored.
"""

import asyncio
import logging
from typing import Any, Generic, TypeVar

from speechrelay.backends.registry import BackendRegistry
from speechrelay.errors import BackendRuntimeError, ConfigurationError
from speechrelay.events.event_bus import TextEventBus
from speechrelay.events.types import (
    NOTIFICATIONS_TOPIC,
    STREAM_ENDED_TOPIC,
    ServiceNotice,
    ServiceState,
    ServiceStatus,
    state_topic,
)
from speechrelay.settings import ServiceSettings, merge_settings

logger = logging.getLogger(__name__)

B = TypeVar("B")
S = TypeVar("S", bound=ServiceSettings)


class ServiceReceiver:
    """Receiver handed to exactly one backend instance.

    Forwards callbacks to the owning service together with the instance they
    came from; the service drops them unless that instance is still active.
    """

    def __init__(self, service: "BackendService") -> None:
        self._service = service
        self._backend: Any = None

    def bind(self, backend: Any) -> None:
        self._backend = backend

    def on_start(self) -> None:
        self._service._handle_start(self._backend)

    def on_stop(self, error: str | None = None) -> None:
        self._service._handle_stop(self._backend, error)


class BackendService(Generic[B, S]):
    """Base class for services orchestrating one backend per direction."""

    receiver_class: type[ServiceReceiver] = ServiceReceiver

    def __init__(
        self,
        name: str,
        bus: TextEventBus,
        registry: BackendRegistry,
        settings: S,
    ) -> None:
        self.name = name
        self._bus = bus
        self._registry = registry
        self._settings: S = settings
        self._backend: B | None = None
        self._backend_id: str | None = None
        self._status: ServiceStatus = ServiceStatus.DISCONNECTED
        self._error: str = ""
        self._lifecycle = asyncio.Lock()
        self._stream_subscription: str | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> ServiceStatus:
        return self._status

    @property
    def error(self) -> str:
        return self._error

    @property
    def settings(self) -> S:
        return self._settings

    @property
    def backend(self) -> B | None:
        """The active backend instance, if any."""
        return self._backend

    @property
    def state(self) -> ServiceState:
        """Snapshot of the observable service state."""
        return ServiceState(
            service=self.name,
            status=self._status,
            error=self._error,
            backend=self._backend_id,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Wire bus subscriptions and honour ``auto_start``."""
        if self._stream_subscription is None:
            self._stream_subscription = self._bus.subscribe(
                STREAM_ENDED_TOPIC, self._on_stream_ended
            )
        if self._settings.auto_start:
            await self.start()

    async def close(self) -> None:
        """Stop the backend and drop bus subscriptions (process shutdown)."""
        self._bus.unsubscribe(self._stream_subscription)
        self._stream_subscription = None
        await self.stop()
        for task in list(self._tasks):
            task.cancel()

    async def start(self) -> None:
        """Replace the active backend with a fresh instance of the configured one."""
        async with self._lifecycle:
            await self._shutdown_backend()
            self._error = ""
            backend_id = self._settings.backend
            try:
                descriptor = self._registry.resolve(backend_id)
                config = descriptor.validate(self._settings.options_for(backend_id))
            except ConfigurationError as exc:
                logger.warning("%s backend %r not started: %s", self.name, backend_id, exc)
                self._report_stop(str(exc))
                return

            receiver = self.receiver_class(self)
            backend = descriptor.create(receiver)
            receiver.bind(backend)
            self._backend = backend
            self._backend_id = descriptor.identifier
            self._on_backend_attached(backend)
            self._set_status(ServiceStatus.CONNECTING)
            logger.info("Starting %s backend '%s'", self.name, descriptor.identifier)

        # Not under the lock: stop() must be able to interrupt a pending start.
        try:
            await backend.start(config)
        except Exception as exc:
            logger.warning(
                "%s backend '%s' failed to start", self.name, descriptor.identifier,
                exc_info=True,
            )
            self._handle_stop(backend, str(BackendRuntimeError(descriptor.identifier, str(exc))))

    async def stop(self) -> None:
        """Stop and dispose the active backend, if any."""
        async with self._lifecycle:
            await self._shutdown_backend()

    def update_settings(self, **changes: Any) -> S:
        """Apply validated setting changes and react to them."""
        old = self._settings
        new = merge_settings(old, changes)
        self._settings = new
        self._on_settings_changed(old, new)
        return new

    # ------------------------------------------------------------------
    # Receiver entry points
    # ------------------------------------------------------------------

    def _is_active(self, backend: Any) -> bool:
        if backend is not None and backend is self._backend:
            return True
        logger.debug("Ignoring callback from stale %s backend %r", self.name, backend)
        return False

    def _handle_start(self, backend: Any) -> None:
        if not self._is_active(backend):
            return
        self._set_status(ServiceStatus.CONNECTED)
        self._on_backend_started(backend)
        logger.info("%s backend '%s' connected", self.name, self._backend_id)

    def _handle_stop(self, backend: Any, error: str | None = None) -> None:
        if not self._is_active(backend):
            return
        self._detach()
        self._dispose(backend)
        self._report_stop(error)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _shutdown_backend(self) -> None:
        backend = self._detach()
        if backend is not None:
            try:
                await backend.stop()
            except Exception:
                logger.warning("%s backend raised while stopping", self.name, exc_info=True)
            self._dispose(backend)
            logger.info("%s backend stopped", self.name)
        self._set_status(ServiceStatus.DISCONNECTED)
        self._on_shutdown()

    def _detach(self) -> B | None:
        backend = self._backend
        self._backend = None
        self._backend_id = None
        if backend is not None:
            self._on_backend_detached(backend)
        return backend

    def _dispose(self, backend: Any) -> None:
        try:
            backend.dispose()
        except Exception:
            logger.warning("%s backend raised while disposing", self.name, exc_info=True)

    def _report_stop(self, error: str | None) -> None:
        if error:
            self._error = error
            logger.error("%s stopped: %s", self.name, error)
            self._bus.publish(
                NOTIFICATIONS_TOPIC, ServiceNotice(service=self.name, message=error)
            )
        self._set_status(ServiceStatus.DISCONNECTED, force=bool(error))

    def _notify(self, message: str, level: str = "warning") -> None:
        self._bus.publish(
            NOTIFICATIONS_TOPIC,
            ServiceNotice(service=self.name, message=message, level=level),
        )

    def _set_status(self, status: ServiceStatus, force: bool = False) -> None:
        if status == self._status and not force:
            return
        self._status = status
        self._publish_state()

    def _publish_state(self) -> None:
        self._bus.publish(state_topic(self.name), self.state)

    def _on_stream_ended(self, _event: Any = None) -> None:
        if self._settings.stop_with_stream and self._status == ServiceStatus.CONNECTED:
            logger.info("Stream ended; stopping %s", self.name)
            self._spawn(self.stop())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # Hooks for subclasses.

    def _on_backend_attached(self, backend: B) -> None:
        pass

    def _on_backend_started(self, backend: B) -> None:
        pass

    def _on_backend_detached(self, backend: B) -> None:
        pass

    def _on_shutdown(self) -> None:
        pass

    def _on_settings_changed(self, old: S, new: S) -> None:
        pass
