"""Configuration constants and helpers for speechrelay."""

import os
from pathlib import Path

DEFAULT_PORT: int = 7870

SPEECHRELAY_HOME: Path = Path(
    os.environ.get("SPEECHRELAY_HOME", str(Path.home() / ".speechrelay"))
)
SETTINGS_PATH: Path = Path(
    os.environ.get("SPEECHRELAY_SETTINGS", str(SPEECHRELAY_HOME / "settings.json"))
)
LOG_FILE: Path = SPEECHRELAY_HOME / "server.log"

LOG_LEVEL: str = os.environ.get("SPEECHRELAY_LOG_LEVEL", "INFO").upper()


def get_port() -> int:
    """Return the server port from SPEECHRELAY_PORT env var, or DEFAULT_PORT."""
    raw = os.environ.get("SPEECHRELAY_PORT")
    if raw is not None:
        try:
            return int(raw)
        except ValueError:
            return DEFAULT_PORT
    return DEFAULT_PORT


# --- Pipeline configuration ---

# Sentinel published as a final event when an utterance is abandoned mid-flight.
CANCELLED_UTTERANCE_MARKER: str = "[...]"

# Per-subscriber queue size for the SSE bridge (events are dropped when full).
EVENT_QUEUE_SIZE: int = int(os.environ.get("SPEECHRELAY_EVENT_QUEUE_SIZE", "256"))


# --- Backend adapter configuration ---

COMMAND_TTS_TIMEOUT: float = float(
    os.environ.get("SPEECHRELAY_COMMAND_TTS_TIMEOUT", "60.0")
)
PROCESS_STT_STOP_TIMEOUT: float = float(
    os.environ.get("SPEECHRELAY_PROCESS_STT_STOP_TIMEOUT", "5.0")
)


# --- Webhook integration ---

WEBHOOK_TIMEOUT: float = float(os.environ.get("SPEECHRELAY_WEBHOOK_TIMEOUT", "10.0"))
WEBHOOK_DEFAULT_USERNAME: str = os.environ.get(
    "SPEECHRELAY_WEBHOOK_USERNAME", "speechrelay"
)
