"""Gamewire - schema-negotiating WebSocket transport for game clients."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("gamewire")
except PackageNotFoundError:
    __version__ = "(local)"
