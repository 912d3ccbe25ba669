"""Command-line interface for speechrelay.

Provides ``speechrelay serve``, ``status``, ``say`` and ``backends``. The
entry point is registered via ``pyproject.toml`` as
``speechrelay = "speechrelay.cli:cli"``.
"""

import logging
from pathlib import Path

import click
import httpx

from speechrelay.config import LOG_FILE, LOG_LEVEL, SPEECHRELAY_HOME, get_port

logger = logging.getLogger(__name__)

_MIN_PORT = 1024
_MAX_PORT = 65535
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_port(port: int | None) -> int:
    """Return the port to use, falling back to env var / default."""
    if port is not None:
        return port
    return get_port()


def _validate_port(port: int) -> None:
    """Raise ``click.BadParameter`` if *port* is out of range."""
    if not (_MIN_PORT <= port <= _MAX_PORT):
        raise click.BadParameter(
            f"Port must be between {_MIN_PORT} and {_MAX_PORT}, got {port}."
        )


def _setup_logging(log_to_file: bool) -> None:
    """Configure the root logger for console output and, optionally, a log file."""
    logging.basicConfig(level=LOG_LEVEL, format=_LOG_FORMAT)
    if log_to_file:
        SPEECHRELAY_HOME.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(LOG_FILE)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def _base_url(port: int) -> str:
    return f"http://127.0.0.1:{port}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """speechrelay -- real-time speech-event pipeline."""


@cli.command()
@click.option("--port", default=None, type=int, help="Server port (default: 7870)")
@click.option(
    "--settings",
    "settings_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings JSON file",
)
@click.option("--log-file", is_flag=True, help=f"Also write logs to {LOG_FILE}")
def serve(port: int | None, settings_path: Path | None, log_file: bool) -> None:
    """Run the speechrelay server in the foreground."""
    import uvicorn

    from speechrelay.server.app import create_app
    from speechrelay.settings import load_settings

    port = _resolve_port(port)
    _validate_port(port)
    _setup_logging(log_file)

    app = create_app(load_settings(settings_path))
    click.echo(f"Starting speechrelay on port {port}...")
    try:
        uvicorn.run(app, host="127.0.0.1", port=port, log_level=LOG_LEVEL.lower())
    except OSError as exc:
        if "address already in use" in str(exc).lower():
            click.echo(
                click.style(
                    f"Port {port} is already in use. Choose a different port with --port.",
                    fg="red",
                )
            )
            raise SystemExit(1)
        raise


@cli.command()
@click.option("--port", default=None, type=int, help="Server port to check")
def status(port: int | None) -> None:
    """Show server and service status."""
    port = _resolve_port(port)
    try:
        resp = httpx.get(f"{_base_url(port)}/health", timeout=2.0)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError):
        click.echo(click.style(f"Server is not responding on port {port}.", fg="yellow"))
        raise SystemExit(1)

    click.echo(click.style("Server is healthy.", fg="green"))
    click.echo(f"  Version:     {data.get('version', '?')}")
    click.echo(f"  Subscribers: {data.get('subscribers', '?')}")
    for name in ("stt", "tts"):
        service = data.get(name) or {}
        line = f"  {name.upper()}:         {service.get('status', '?')}"
        if service.get("backend"):
            line += f" ({service['backend']})"
        if service.get("muted") and service["muted"] != "unmuted":
            line += f" [{service['muted']}]"
        click.echo(line)
        if service.get("error"):
            click.echo(click.style(f"    error: {service['error']}", fg="red"))


@cli.command()
@click.argument("text")
@click.option("--interim", is_flag=True, help="Send as an interim result")
@click.option("--textfield", is_flag=True, help="Publish as manual text field input")
@click.option("--port", default=None, type=int, help="Server port")
def say(text: str, interim: bool, textfield: bool, port: int | None) -> None:
    """Send TEXT to a running server as a manual caption."""
    port = _resolve_port(port)
    payload = {
        "type": "interim" if interim else "final",
        "value": text,
        "target": "textfield" if textfield else "stt",
    }
    try:
        resp = httpx.post(f"{_base_url(port)}/text", json=payload, timeout=2.0)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        click.echo(click.style(f"Could not reach server: {exc}", fg="red"))
        raise SystemExit(1)
    result = resp.json()
    if result.get("status") != "ok":
        click.echo(click.style(f"Rejected: {result.get('reason', '?')}", fg="yellow"))
        raise SystemExit(1)
    click.echo("Sent.")


@cli.command()
def backends() -> None:
    """List the registered recognition and synthesis backends."""
    from speechrelay.backends.registry import (
        default_recognition_registry,
        default_synthesis_registry,
    )

    for registry in (default_recognition_registry(), default_synthesis_registry()):
        click.echo(click.style(f"{registry.direction}:", bold=True))
        for descriptor in registry:
            required = ", ".join(descriptor.required) or "-"
            click.echo(f"  {descriptor.identifier:<10} {descriptor.description}")
            click.echo(f"  {'':<10} required options: {required}")
