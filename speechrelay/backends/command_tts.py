"""Synthesis backend that runs a local executable for every utterance.

``args`` may contain the placeholders ``{text}`` and ``{device}``; when no
argument contains ``{text}`` the text is appended as the last argument. The
command is executed directly (no shell), so the text is never interpreted.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from pydantic import BaseModel, Field

from speechrelay.backends.base import SynthesisBackend, SynthesisReceiver
from speechrelay.config import COMMAND_TTS_TIMEOUT
from speechrelay.errors import BackendRuntimeError

logger = logging.getLogger(__name__)


class CommandSynthesisConfig(BaseModel):
    exe_location: str = ""
    args: list[str] = Field(default_factory=list)
    device: str = ""
    timeout: float = COMMAND_TTS_TIMEOUT


class CommandSynthesisBackend(SynthesisBackend):
    """Speaks text by invoking an external command."""

    def __init__(self, receiver: SynthesisReceiver) -> None:
        super().__init__(receiver)
        self._config: CommandSynthesisConfig | None = None
        self._current: asyncio.subprocess.Process | None = None
        self._stopped: bool = False

    async def start(self, config: CommandSynthesisConfig) -> None:
        """Check that the executable exists, then report ready."""
        if shutil.which(config.exe_location) is None and not Path(config.exe_location).is_file():
            self._stopped = True
            self.receiver.on_stop(f"Executable '{config.exe_location}' not found")
            return
        self._config = config
        self.receiver.on_start()

    async def play(self, text: str) -> None:
        """Run the command for *text* and wait for it to finish."""
        if self._config is None or self._stopped:
            return
        config = self._config
        proc = await asyncio.create_subprocess_exec(
            *self.build_command(config, text),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        self._current = proc
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=config.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise BackendRuntimeError("command", f"timed out after {config.timeout:.0f}s")
        finally:
            self._current = None

        if proc.returncode != 0 and not self._stopped:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise BackendRuntimeError(
                "command", f"exited with code {proc.returncode}: {message[:200]}"
            )

    async def stop(self) -> None:
        """Kill any running utterance and report the engine stopped."""
        if self._stopped:
            return
        self._stopped = True
        proc = self._current
        if proc is not None and proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        self.receiver.on_stop()

    @staticmethod
    def build_command(config: CommandSynthesisConfig, text: str) -> list[str]:
        """Expand placeholders and return the argv for one utterance."""
        args = [
            arg.replace("{device}", config.device).replace("{text}", text)
            for arg in config.args
        ]
        if not any("{text}" in arg for arg in config.args):
            args.append(text)
        return [config.exe_location, *args]
