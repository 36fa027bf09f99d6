"""Dashboard API routes."""

from . import events, session

__all__ = ["events", "session"]
