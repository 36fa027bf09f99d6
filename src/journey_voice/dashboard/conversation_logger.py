"""Record what was said during a session, for the dashboard."""

import asyncio
import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

ConversationRole = Literal["user", "assistant", "system"]

SPEAKER_LABELS: dict[str, str] = {
    "user": "User",
    "assistant": "Guide",
    "system": "System",
}


@dataclass
class ConversationEntry:
    """One spoken line (or session event) in the log."""

    role: ConversationRole
    content: str
    phase: str = ""
    entry_id: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "role": self.role,
            "content": self.content,
            "phase": self.phase,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
        }

    def as_line(self) -> str:
        """Render as a transcript line, e.g. ``[journey1] User: ...``."""
        label = SPEAKER_LABELS.get(self.role, self.role)
        prefix = f"[{self.phase}] " if self.phase else ""
        return f"{prefix}{label}: {self.content}"


class ConversationLogger:
    """Bounded, in-memory log of the session's exchanges.

    Listeners (sync or async callables) are told about every new entry;
    the dashboard uses one to push entries over its websocket.
    """

    def __init__(self, max_entries: int = 1000):
        """Initialize logger.

        Args:
            max_entries: Oldest entries are dropped beyond this many
        """
        self.entries: deque[ConversationEntry] = deque(maxlen=max_entries)
        self._listeners: list[Callable[[ConversationEntry], Any]] = []
        self._last_id = 0

    def add_listener(self, callback: Callable[[ConversationEntry], Any]) -> None:
        """Subscribe to new entries (callback may be a coroutine function)."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[ConversationEntry], Any]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def _record(self, entry: ConversationEntry) -> ConversationEntry:
        self._last_id += 1
        entry.entry_id = self._last_id
        self.entries.append(entry)

        for listener in list(self._listeners):
            try:
                outcome = listener(entry)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"Conversation listener failed on entry {entry.entry_id}: {e}")
        return entry

    async def log_user_speech(self, transcript: str, phase: str = "") -> ConversationEntry:
        """Record a finished user utterance and the phase it was answered in."""
        return await self._record(ConversationEntry("user", transcript, phase=phase))

    async def log_assistant_response(self, text: str, phase: str = "") -> ConversationEntry:
        """Record a prompt that was spoken to the user."""
        return await self._record(ConversationEntry("assistant", text, phase=phase))

    async def log_system_event(self, message: str, event_type: str = "info") -> ConversationEntry:
        """Record a session event such as a recovery or reset."""
        return await self._record(
            ConversationEntry("system", message, event_type=event_type)
        )

    def get_entries(
        self,
        limit: int = 100,
        offset: int = 0,
        roles: list[ConversationRole] | None = None
    ) -> list[ConversationEntry]:
        """Get conversation entries.

        Args:
            limit: Maximum entries to return
            offset: Skip this many entries
            roles: Only include these roles

        Returns:
            List of entries (newest first)
        """
        selected = [
            entry for entry in reversed(self.entries)
            if not roles or entry.role in roles
        ]
        return selected[offset:offset + limit]

    def get_recent_transcript(self, count: int = 20) -> str:
        """Last ``count`` spoken lines, oldest first, one per line."""
        spoken = [entry for entry in self.entries if entry.role != "system"]
        return "\n".join(entry.as_line() for entry in spoken[-count:]) if count > 0 else ""

    def count_by(self, attribute: str) -> dict[str, int]:
        """Tally entries by ``role`` or ``phase``."""
        return dict(Counter(getattr(entry, attribute) or "none" for entry in self.entries))

    def clear(self) -> None:
        self.entries.clear()
