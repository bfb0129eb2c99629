"""Configuration for the device query service."""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings"
]
