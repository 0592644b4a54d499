"""hotspot-gate: Telegram-approved hotspot access for MikroTik RouterOS."""

from importlib import metadata

try:
    __version__ = metadata.version("hotspot-gate")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"
