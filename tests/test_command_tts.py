"""Tests for CommandSynthesisBackend with mocked subprocesses."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from speechrelay.backends.command_tts import CommandSynthesisBackend, CommandSynthesisConfig
from speechrelay.errors import BackendRuntimeError


def _mock_process(returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.returncode = returncode
    return proc


class SpawnRecorder:
    """Stands in for asyncio.create_subprocess_exec."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.process = _mock_process()

    async def __call__(self, *args, **kwargs):
        self.calls.append(args)
        return self.process


@pytest.fixture
def receiver() -> MagicMock:
    return MagicMock()


@pytest.fixture
def spawn(monkeypatch) -> SpawnRecorder:
    recorder = SpawnRecorder()
    monkeypatch.setattr("asyncio.create_subprocess_exec", recorder)
    return recorder


@pytest.fixture
async def backend(receiver, monkeypatch) -> CommandSynthesisBackend:
    monkeypatch.setattr("shutil.which", lambda cmd: f"/usr/bin/{cmd}")
    instance = CommandSynthesisBackend(receiver)
    await instance.start(
        CommandSynthesisConfig(exe_location="say", args=["-v", "{device}"], device="Alex")
    )
    return instance


# ---------------------------------------------------------------------------
# build_command
# ---------------------------------------------------------------------------


class TestBuildCommand:
    def test_text_appended_without_placeholder(self):
        config = CommandSynthesisConfig(exe_location="espeak", args=["-s", "150"])
        assert CommandSynthesisBackend.build_command(config, "hi there") == [
            "espeak",
            "-s",
            "150",
            "hi there",
        ]

    def test_text_placeholder(self):
        config = CommandSynthesisConfig(exe_location="tts", args=["--text={text}", "--out", "-"])
        assert CommandSynthesisBackend.build_command(config, "hello") == [
            "tts",
            "--text=hello",
            "--out",
            "-",
        ]

    def test_device_placeholder(self):
        config = CommandSynthesisConfig(exe_location="tts", args=["-d", "{device}"], device="hw:1")
        assert CommandSynthesisBackend.build_command(config, "x") == ["tts", "-d", "hw:1", "x"]

    def test_text_is_a_single_argument(self):
        config = CommandSynthesisConfig(exe_location="tts")
        assert CommandSynthesisBackend.build_command(config, "a; rm -rf /") == [
            "tts",
            "a; rm -rf /",
        ]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestCommandLifecycle:
    async def test_start_reports_ready(self, backend, receiver):
        receiver.on_start.assert_called_once_with()
        receiver.on_stop.assert_not_called()

    async def test_missing_executable(self, receiver, monkeypatch, tmp_path):
        monkeypatch.setattr("shutil.which", lambda cmd: None)
        instance = CommandSynthesisBackend(receiver)

        await instance.start(CommandSynthesisConfig(exe_location=str(tmp_path / "nope")))

        receiver.on_start.assert_not_called()
        message = receiver.on_stop.call_args.args[0]
        assert message.startswith("Executable '")
        assert message.endswith("not found")

    async def test_executable_path_accepted(self, receiver, monkeypatch, tmp_path):
        monkeypatch.setattr("shutil.which", lambda cmd: None)
        exe = tmp_path / "speak.sh"
        exe.write_text("#!/bin/sh\n", encoding="utf-8")
        instance = CommandSynthesisBackend(receiver)

        await instance.start(CommandSynthesisConfig(exe_location=str(exe)))

        receiver.on_start.assert_called_once_with()

    async def test_stop_reports_once(self, backend, receiver):
        await backend.stop()
        await backend.stop()
        receiver.on_stop.assert_called_once_with()


# ---------------------------------------------------------------------------
# play
# ---------------------------------------------------------------------------


class TestPlay:
    async def test_play_runs_command(self, backend, spawn):
        await backend.play("good morning")
        assert spawn.calls == [("say", "-v", "Alex", "good morning")]

    async def test_play_non_zero_exit_raises(self, backend, spawn):
        spawn.process = _mock_process(returncode=1, stderr=b"unknown voice\n")

        with pytest.raises(BackendRuntimeError) as exc_info:
            await backend.play("hello")

        assert str(exc_info.value) == "command: exited with code 1: unknown voice"

    async def test_play_timeout_kills_process(self, receiver, spawn, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda cmd: f"/usr/bin/{cmd}")

        async def _hang():
            await asyncio.sleep(10)

        spawn.process.communicate = _hang
        instance = CommandSynthesisBackend(receiver)
        await instance.start(CommandSynthesisConfig(exe_location="say", timeout=0.01))

        with pytest.raises(BackendRuntimeError, match="timed out"):
            await instance.play("slow")

        spawn.process.kill.assert_called_once()

    async def test_play_after_stop_is_noop(self, backend, spawn):
        await backend.stop()
        await backend.play("too late")
        assert spawn.calls == []

    async def test_play_before_start_is_noop(self, receiver, spawn):
        instance = CommandSynthesisBackend(receiver)
        await instance.play("early")
        assert spawn.calls == []
