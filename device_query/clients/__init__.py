"""Clients for remote collaborators."""

from .inventory_client import InventoryClient

__all__ = [
    "InventoryClient"
]
