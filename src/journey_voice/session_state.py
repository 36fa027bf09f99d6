"""Session-level state for a journey reflection session.

This module holds the single source of truth the dialogue runs on:
- Current phase
- Variables A/B extracted from the intro
- Per-journey dialogue history
- Recorded insights
- The turn counter for the current journey

State is volatile and lives for the duration of the process. Nothing here
performs I/O; listeners are notified after each mutation so the dashboard
can mirror the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .models import JOURNEY_KEYS, DialogueEntry, Phase, Variables

logger = logging.getLogger(__name__)


def _empty_history() -> dict[str, list[DialogueEntry]]:
    return {key: [] for key in JOURNEY_KEYS}


@dataclass
class SessionStore:
    """In-memory state for one reflection session."""

    phase: Phase = "intro"
    variables: Variables = field(default_factory=Variables)
    history: dict[str, list[DialogueEntry]] = field(default_factory=_empty_history)
    insights: list[str] = field(default_factory=list)
    cycle: int = 0

    _listeners: list[Callable[[str], None]] = field(default_factory=list, repr=False)

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Add a callback to be notified after every mutation.

        Args:
            callback: Function called with the mutation name
                      Signature: callback(change: str) -> None
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str], None]) -> None:
        """Remove a change listener."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, change: str) -> None:
        for listener in self._listeners:
            try:
                listener(change)
            except Exception:
                logger.exception(f"Session listener failed on {change}")

    # --- Mutations ---

    def set_phase(self, phase: Phase) -> None:
        """Move the session to a new phase."""
        self.phase = phase
        self._notify("phase")

    def set_variables(self, **partial: str) -> None:
        """Merge new values into the variables, leaving the others intact."""
        for name in ("A", "B"):
            if name in partial:
                setattr(self.variables, name, partial[name])
        self._notify("variables")

    def append_history(self, branch_key: str, entry: DialogueEntry) -> None:
        """Append an exchange to a journey branch, creating it if needed."""
        self.history.setdefault(branch_key, []).append(entry)
        self._notify("history")

    def append_insight(self, text: str) -> None:
        """Record an insight."""
        self.insights.append(text)
        self._notify("insights")

    def increment_cycle(self) -> None:
        """Count one more turn in the current journey."""
        self.cycle += 1
        self._notify("cycle")

    def reset_cycle(self) -> None:
        """Reset the turn counter."""
        self.cycle = 0
        self._notify("cycle")

    def reset_session(self) -> None:
        """Return every field to its initial value."""
        self.phase = "intro"
        self.variables = Variables()
        self.history = _empty_history()
        self.insights = []
        self.cycle = 0
        self._notify("reset")

    # --- Readers ---

    def get_history(self, branch_key: str) -> list[DialogueEntry]:
        """Get the exchanges recorded for a branch (empty if not visited)."""
        return list(self.history.get(branch_key, []))

    def snapshot(self) -> dict:
        """Detached, JSON-ready copy of the session for the presentation layer."""
        return {
            "phase": self.phase,
            "variables": self.variables.to_dict(),
            "history": {
                key: [entry.to_dict() for entry in entries]
                for key, entries in self.history.items()
            },
            "insights": list(self.insights),
            "cycle": self.cycle,
        }
