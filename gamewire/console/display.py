"""Rich rendering of schemas, messages and notifications."""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gamewire.proto import Message, Notification, SchemaRegistry, encode


def schema_data(registry: SchemaRegistry) -> dict[str, Any]:
    """Describe every registered class as plain data."""
    data: dict[str, Any] = {}
    for rtype in registry:
        entry: dict[str, Any] = {
            "nativeName": rtype.native_name,
            "kind": "enum" if rtype.is_enum else "class",
            "accessors": sorted(rtype.accessors),
        }
        if rtype.is_enum:
            entry["entries"] = {key: encode(value.fields) for key, value in rtype.entries.items()}
        data[rtype.name] = entry
    return data


def schema_table(registry: SchemaRegistry) -> Table:
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("Name", style="white", no_wrap=True)
    table.add_column("Native name", style="dim")
    table.add_column("Kind", style="yellow")
    table.add_column("Accessors", style="green")
    table.add_column("Entries", style="cyan")

    for rtype in registry:
        table.add_row(
            rtype.name,
            rtype.native_name,
            "enum" if rtype.is_enum else "class",
            ", ".join(sorted(rtype.accessors)),
            ", ".join(rtype.entries) if rtype.is_enum else "",
        )
    return table


def print_schema(console: Console, registry: SchemaRegistry) -> None:
    console.print(f"[bold cyan]Schema[/bold cyan] ({len(registry)} classes)")
    console.print(schema_table(registry))
    console.print()


def print_message(console: Console, message: Message) -> None:
    console.print_json(data=message.to_dict())


class ConsoleNotifier:
    """Notifier that prints each notification as a panel.

    A printed panel cannot be taken off screen, so `showing` stays false.
    """

    def __init__(self, console: Console) -> None:
        self.console = console

    @property
    def showing(self) -> bool:
        return False

    def show(self, notification: Notification) -> None:
        self.console.print(
            Panel(notification.text, title=notification.title, border_style="red", expand=False)
        )
