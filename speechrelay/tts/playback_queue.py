"""Strictly ordered playback queue bound to one synthesis backend instance."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from speechrelay.backends.base import SynthesisBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackRequest:
    text: str


class PlaybackQueue:
    """FIFO queue drained by a single worker task.

    Only one ``backend.play`` call is awaited at a time, so requests are never
    reordered or interleaved no matter how many are submitted concurrently.
    A failing request is logged (and reported through *on_error*) and the
    worker moves on to the next one.

    Requests may be submitted before :meth:`start`; they wait until the
    backend has reported that it is ready.
    """

    def __init__(
        self,
        backend: SynthesisBackend,
        *,
        on_error: Callable[[PlaybackRequest, Exception], None] | None = None,
    ) -> None:
        self._backend = backend
        self._on_error = on_error
        self._queue: asyncio.Queue[PlaybackRequest] = asyncio.Queue()
        self._worker_task: asyncio.Task[None] | None = None
        self._closed: bool = False
        self._in_flight: PlaybackRequest | None = None

    @property
    def depth(self) -> int:
        """Requests waiting, not counting the one being played."""
        return self._queue.qsize()

    @property
    def in_flight(self) -> PlaybackRequest | None:
        return self._in_flight

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Begin draining the queue."""
        if self._closed or self.running:
            return
        self._worker_task = asyncio.get_running_loop().create_task(self._playback_worker())

    def submit(self, text: str) -> PlaybackRequest:
        """Append a request; raises if the queue was closed."""
        if self._closed:
            raise RuntimeError("Playback queue is closed")
        request = PlaybackRequest(text=text)
        self._queue.put_nowait(request)
        logger.debug("Queued playback (depth=%d): %s", self._queue.qsize(), text[:80])
        return request

    async def join(self) -> None:
        """Wait until every submitted request has been played or dropped."""
        await self._queue.join()

    def close(self) -> int:
        """Stop the worker and drop pending requests; returns how many were dropped."""
        self._closed = True
        if self._worker_task is not None and not self._worker_task.done():
            self._worker_task.cancel()
        self._worker_task = None

        dropped = 0
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.info("Dropped %d pending playback request(s)", dropped)
        return dropped

    async def _playback_worker(self) -> None:
        while True:
            request = await self._queue.get()
            self._in_flight = request
            try:
                await self._backend.play(request.text)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Playback failed for %r", request.text[:80], exc_info=True)
                if self._on_error is not None:
                    self._on_error(request, exc)
            finally:
                self._in_flight = None
                self._queue.task_done()
