"""Data models for the journey reflection session."""

import time
from dataclasses import dataclass, field
from typing import Literal


# Type aliases for phases and turn-taking states
Phase = Literal[
    "intro",
    "journey1",
    "journey2",
    "journey3",
    "journey4",
    "extract_journey1",
    "extract_journey2",
    "extract_journey3",
    "extract_journey4",
    "summary",
    "reflection"
]

TurnState = Literal["idle", "listening", "processing", "speaking"]

ListeningState = Literal["idle", "starting", "listening", "stopping"]

JOURNEY_KEYS: tuple[str, ...] = ("journey1", "journey2", "journey3", "journey4")


def journey_number(phase: str) -> int | None:
    """Return the journey number (1-4) for a journey or extract phase.

    Args:
        phase: Phase name

    Returns:
        Journey number, or None for intro/summary/reflection
    """
    if phase.startswith("extract_"):
        phase = phase[len("extract_"):]
    if phase in JOURNEY_KEYS:
        return int(phase[-1])
    return None


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Variables:
    """The two phrases taken from the intro utterance."""

    A: str = ""  # what the user wants to do
    B: str = ""  # what the user cannot do

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"A": self.A, "B": self.B}


@dataclass
class DialogueEntry:
    """One question/answer exchange inside a journey."""

    question: str
    answer: str
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "question": self.question,
            "answer": self.answer,
            "timestamp": self.timestamp
        }


@dataclass
class RecognitionResult:
    """A single recognition hypothesis delivered by a recognition engine."""

    transcript: str
    is_final: bool = False


@dataclass
class Voice:
    """A synthesis voice offered by a synthesis engine."""

    name: str
    language: str


@dataclass
class Utterance:
    """A fully parameterised request to speak."""

    text: str
    language: str = "ja-JP"
    pitch: float = 1.1
    rate: float = 0.9
    voice: Voice | None = None
