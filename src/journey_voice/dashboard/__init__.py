"""Dashboard module: read-only session view plus session controls."""

from .conversation_logger import ConversationLogger
from .websocket import ConnectionManager
from .server import create_dashboard_app

__all__ = ["ConversationLogger", "ConnectionManager", "create_dashboard_app"]
