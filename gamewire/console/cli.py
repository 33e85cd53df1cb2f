"""Command-line interface for gamewire sessions."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from gamewire.console.display import ConsoleNotifier, print_message, print_schema, schema_data
from gamewire.proto import (
    ConnectionFailed,
    MalformedFrame,
    ProtocolClose,
    SchemaError,
    SchemaRegistry,
    SessionOptions,
    TransportSession,
    parse_handshake,
)
from gamewire.proto.runtime import DEFAULT_PATH

session_options = [
    click.argument("url", envvar="GAMEWIRE_URL"),
    click.option("--path", default=DEFAULT_PATH, show_default=True, help="Endpoint path"),
    click.option(
        "--keep-alive-type",
        default="PacketServerKeepAlive",
        show_default=True,
        help="Class name of keep-alive payloads",
    ),
    click.option(
        "--disconnect-type",
        default="PacketDisconnect",
        show_default=True,
        help="Class name of disconnect payloads",
    ),
]


def with_session_options(func):
    for option in reversed(session_options):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log every frame sent and received")
def cli(verbose: bool) -> None:
    """Gamewire protocol tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Captured handshake frame")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def schema(input_file: str, output_json: bool) -> None:
    """Display the classes announced in a handshake frame."""
    with open(input_file, encoding="utf-8") as f:
        raw = f.read()

    registry = SchemaRegistry()
    try:
        registry.load(parse_handshake(raw).classes)
    except (MalformedFrame, SchemaError) as exc:
        print(f"Invalid handshake: {exc}")
        sys.exit(1)

    if output_json:
        print(json.dumps(schema_data(registry), indent=2))
    else:
        print_schema(Console(), registry)


@cli.command()
@with_session_options
def listen(url: str, path: str, keep_alive_type: str, disconnect_type: str) -> None:
    """Print unsolicited messages until the server closes the connection."""
    options = SessionOptions(url, path, keep_alive_type, disconnect_type)
    _run(_listen(options))


@cli.command()
@with_session_options
@click.argument("payload")
def send(url: str, path: str, keep_alive_type: str, disconnect_type: str, payload: str) -> None:
    """Send PAYLOAD (JSON) as a request and print the reply."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(str(exc), param_hint="PAYLOAD") from exc

    options = SessionOptions(url, path, keep_alive_type, disconnect_type)
    _run(_send(options, data))


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except ConnectionFailed as exc:
        print(f"Connection failed: {exc}")
        sys.exit(1)
    except ProtocolClose as exc:
        print(f"Connection lost: {exc}")
        sys.exit(1)
    except (MalformedFrame, SchemaError) as exc:
        print(f"Protocol error: {exc}")
        sys.exit(2)


async def _listen(options: SessionOptions) -> None:
    console = Console()
    session = TransportSession(options, notifier=ConsoleNotifier(console))
    registry = await session.open()
    print_schema(console, registry)
    session.set_listener(lambda message: print_message(console, message))
    await session.wait_closed()


async def _send(options: SessionOptions, data: Any) -> None:
    console = Console()
    async with TransportSession(options, notifier=ConsoleNotifier(console)) as session:
        reply = await session.request(data)
    print(json.dumps(reply.to_dict(), indent=2))


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
