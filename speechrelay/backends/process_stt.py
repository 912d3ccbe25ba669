"""Recognition backend that reads results from a local recognizer process.

The executable is expected to stream one result per line on stdout:

    interim:<partial text>
    final:<completed text>

Lines without a recognised prefix are treated as final results. The backend
reports ``on_stop()`` when the process exits, with an error when it exits
non-zero on its own.
"""

import asyncio
import logging

from pydantic import BaseModel, Field

from speechrelay.backends.base import RecognitionBackend, RecognitionReceiver
from speechrelay.config import PROCESS_STT_STOP_TIMEOUT

logger = logging.getLogger(__name__)


class ProcessRecognitionConfig(BaseModel):
    exe_location: str = ""
    args: list[str] = Field(default_factory=list)
    interim: bool = True


class ProcessRecognitionBackend(RecognitionBackend):
    """Streams recognition results from a child process."""

    def __init__(self, receiver: RecognitionReceiver) -> None:
        super().__init__(receiver)
        self._config: ProcessRecognitionConfig | None = None
        self._proc: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stopping: bool = False
        self._finished: bool = False

    async def start(self, config: ProcessRecognitionConfig) -> None:
        """Launch the recognizer and begin reading its output."""
        if self._stopping:
            return
        self._config = config
        try:
            self._proc = await asyncio.create_subprocess_exec(
                config.exe_location,
                *config.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("Could not launch recognizer %s", config.exe_location, exc_info=True)
            self._finish(f"Could not launch '{config.exe_location}': {exc}")
            return

        if self._stopping:
            # stop() arrived while the process was being spawned.
            await self._terminate()
            self._finish(None)
            return

        logger.info("Recognizer process started (pid=%s)", self._proc.pid)
        self.receiver.on_start()
        self._reader_task = asyncio.create_task(self._read_output())

    async def stop(self) -> None:
        """Terminate the recognizer; safe to call repeatedly or before start."""
        self._stopping = True
        await self._terminate()
        task = self._reader_task
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._finish(None)

    def dispose(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            try:
                self._proc.kill()
            except ProcessLookupError:
                pass
        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._proc = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _terminate(self) -> None:
        proc = self._proc
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=PROCESS_STT_STOP_TIMEOUT)
        except ProcessLookupError:
            pass
        except asyncio.TimeoutError:
            logger.warning("Recognizer did not exit in time; killing it")
            proc.kill()
            await proc.wait()

    async def _read_output(self) -> None:
        proc = self._proc
        if proc is None or proc.stdout is None:
            self._finish("Recognizer has no output stream")
            return
        error: str | None = None
        try:
            async for raw in proc.stdout:
                if self._stopping:
                    break
                self._dispatch_line(raw.decode("utf-8", errors="replace"))
            returncode = await proc.wait()
            if returncode != 0 and not self._stopping:
                error = f"Recognizer exited with code {returncode}"
        except Exception as exc:
            logger.warning("Reading recognizer output failed", exc_info=True)
            error = f"Reading recognizer output failed: {exc}"
        self._finish(error)

    def _dispatch_line(self, line: str) -> None:
        kind, sep, text = line.rstrip("\r\n").partition(":")
        if not sep or kind.strip().lower() not in ("interim", "final"):
            kind, text = "final", line
        text = text.strip()
        if not text:
            return
        if kind.strip().lower() == "interim":
            if self._config is None or self._config.interim:
                self.receiver.on_interim(text)
        else:
            self.receiver.on_final(text)

    def _finish(self, error: str | None) -> None:
        if self._finished:
            return
        self._finished = True
        self.receiver.on_stop(error)
