"""Utilities for the device query service."""

from .session_store import EditingSession, SessionStore

__all__ = [
    "EditingSession",
    "SessionStore"
]
