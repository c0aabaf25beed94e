from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional

import typer

from livelove.config import load_settings, merge_overrides
from livelove.exceptions import RuntimeClientError
from livelove.runtime_client import RuntimeClient

app = typer.Typer(add_completion=False)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str) -> None:
    # stdout carries the LSP stream.
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT, stream=sys.stderr)


def _context_start_server(ctx: typer.Context) -> Callable[..., None]:
    obj = ctx.obj
    if isinstance(obj, Mapping):
        candidate = obj.get("start_server")
        if callable(candidate):
            return candidate
    return _start_server


def _context_client_factory(ctx: typer.Context) -> Callable[..., RuntimeClient]:
    obj = ctx.obj
    if isinstance(obj, Mapping):
        candidate = obj.get("client_factory")
        if callable(candidate):
            return candidate
    return RuntimeClient


def _start_server(config: Optional[Path], overrides: dict[str, object]) -> None:
    from livelove import server

    server.server.config_path = config
    server.server.overrides = overrides
    settings = merge_overrides(load_settings(config_path=config), overrides)
    server.server.service.configure(settings)
    server.start()


@app.command()
def serve(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Path to livelove.toml."),
    host: Optional[str] = typer.Option(None, "--host", help="Runtime listener address."),
    port: Optional[int] = typer.Option(None, "--port", help="Runtime listener port."),
    debounce_ms: Optional[int] = typer.Option(
        None, "--debounce-ms", help="Coalescing window for outbound file updates."
    ),
    window_size: Optional[int] = typer.Option(
        None, "--window-size", help="Viewer lines shown around the cursor."
    ),
    log_level: str = typer.Option("warning", "--log-level"),
) -> None:
    """Run the language server on stdio and accept runtime clients over TCP."""
    _configure_logging(log_level)
    overrides: dict[str, object] = {
        "host": host,
        "port": port,
        "debounce_ms": debounce_ms,
        "window_size": window_size,
    }
    start_fn = _context_start_server(ctx)
    start_fn(config, overrides)


@app.command()
def send(
    ctx: typer.Context,
    header: str = typer.Argument(..., help="Frame header, e.g. VARS_UPDATE."),
    payload: str = typer.Argument(..., help="Frame payload (JSON or raw text)."),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(12345, "--port"),
) -> None:
    """Send one frame to a running server, as a runtime would."""
    factory = _context_client_factory(ctx)
    try:
        with factory(host=host, port=port) as client:
            client.send(header, payload)
    except RuntimeClientError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"sent {header}")


@app.command()
def listen(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(12345, "--port"),
    count: int = typer.Option(0, "--count", help="Stop after N frames (0 = forever)."),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait per frame."),
) -> None:
    """Connect as a runtime client and print every frame received."""
    factory = _context_client_factory(ctx)
    received = 0
    try:
        with factory(host=host, port=port, timeout=timeout) as client:
            while count <= 0 or received < count:
                frame = client.read_frame()
                received += 1
                typer.echo(f"{frame.header} ({len(frame.payload)} chars)")
    except RuntimeClientError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
