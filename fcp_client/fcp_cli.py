#!/usr/bin/env python3

from __future__ import annotations
import math
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from fcp import __version__
from fcp.errors import ProtocolError, TransportError
from fcp.log import configure_root_logging, get_logger
from fcp.message import Message, create_message
from fcp.session import ClientSession
from .config import ClientConfig, ConfigError, load_config

app = typer.Typer(help="Command-line FCP client")
console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)

EXIT_TRANSPORT = 1
EXIT_PROTOCOL = 3
EXIT_CONFIG = 4


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"fcp {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file (default ~/.fcp/config.yaml)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
):
    """Talk to a Freenet node over FCP."""
    try:
        cfg = load_config(config)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error[/]: {e}")
        raise typer.Exit(code=EXIT_CONFIG)
    configure_root_logging(log_level or cfg.log_level)
    ctx.obj = cfg


@contextmanager
def _handle_errors(host: str, port: int) -> Iterator[None]:
    """Map FCP failures to an error line and exit code"""
    try:
        yield
    except ProtocolError as e:
        err_console.print(f"[red]Protocol error[/] from {host}:{port}: {e}")
        raise typer.Exit(code=EXIT_PROTOCOL)
    except TransportError as e:
        err_console.print(f"[red]Connection error[/]: {e}")
        raise typer.Exit(code=EXIT_TRANSPORT)


def _settings(ctx: typer.Context, host: Optional[str], port: Optional[int],
              client_name: Optional[str], timeout: Optional[float]) -> ClientConfig:
    if timeout is not None and not math.isfinite(timeout):
        raise typer.BadParameter("must be a finite number of seconds", param_hint="'--timeout'")
    cfg: ClientConfig = ctx.obj if isinstance(ctx.obj, ClientConfig) else ClientConfig()
    return ClientConfig(
        host=host or cfg.host,
        port=port if port is not None else cfg.port,
        client_name=client_name or cfg.client_name,
        timeout=timeout if timeout is not None else cfg.timeout,
        log_level=cfg.log_level,
    )


def _parse_fields(pairs: List[str]) -> dict:
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="FIELDS")
        if "\n" in key or "\n" in value:
            raise typer.BadParameter(f"field {key!r} must not contain a newline", param_hint="FIELDS")
        fields[key] = value
    return fields


def _message_table(message: Message) -> Table:
    table = Table(title=message.name)
    table.add_column("Field")
    table.add_column("Value")
    for key, value in message.fields.items():
        table.add_row(key, value)
    return table


@app.command()
def hello(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", "-h", help="The FCP host name"),
    port: Optional[int] = typer.Option(None, "--port", "-p", min=1, max=65535, help="The FCP port"),
    client_name: Optional[str] = typer.Option(None, "--client-name", "-n", help="Name sent in ClientHello"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.001, help="Socket timeout in seconds"),
):
    """Connect, perform the handshake and show the node's NodeHello."""
    cfg = _settings(ctx, host, port, client_name, timeout)
    with _handle_errors(cfg.host, cfg.port), ClientSession(cfg.host, cfg.port, timeout=cfg.timeout) as session:
        node_hello = session.connect(cfg.client_name)
    console.print(_message_table(node_hello))


@app.command()
def send(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Message name, e.g. ListPeers"),
    fields: Optional[List[str]] = typer.Argument(None, help="Message fields as KEY=VALUE"),
    replies: int = typer.Option(1, "--replies", "-r", min=0, help="Number of messages to wait for"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="The FCP host name"),
    port: Optional[int] = typer.Option(None, "--port", "-p", min=1, max=65535, help="The FCP port"),
    client_name: Optional[str] = typer.Option(None, "--client-name", "-n", help="Name sent in ClientHello"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.001, help="Socket timeout in seconds"),
):
    """Send one message after the handshake and print the replies."""
    logger.debug("Sending %s with %d field(s)", name, len(fields or []))
    if not name or "\n" in name:
        raise typer.BadParameter("message name must be non-empty and single-line", param_hint="NAME")
    message = create_message(name, _parse_fields(fields or []))
    cfg = _settings(ctx, host, port, client_name, timeout)

    with _handle_errors(cfg.host, cfg.port), ClientSession(cfg.host, cfg.port, timeout=cfg.timeout) as session:
        session.connect(cfg.client_name)
        session.send_message(message)
        for _ in range(replies):
            console.print(_message_table(session.receive_message()))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
