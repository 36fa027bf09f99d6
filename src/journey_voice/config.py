"""Journey voice configuration loader."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass
class SpeechConfig:
    """Speech synthesis settings."""

    language: str = "ja-JP"
    pitch: float = 1.1  # slightly raised
    rate: float = 0.9  # slightly slowed
    preferred_voice: str = "Neural2"  # name fragment of the preferred provider voice
    timeout: float = 30.0


@dataclass
class ListeningConfig:
    """Speech recognition settings."""

    silence_timeout: float = 2.0
    restart_settle: float = 0.1
    suppress_duplicates: bool = True


@dataclass
class WatchdogConfig:
    """Listening watchdog settings."""

    interval: float = 0.25
    settle_delay: float = 0.5


@dataclass
class PauseConfig:
    """Pause before each kind of prompt, in milliseconds."""

    greeting: int = 500
    intro_retry: int = 1200
    question: int = 1500
    closing: int = 2000
    next_journey: int = 2000
    summary: int = 3000


def _section(cls, data: Any):
    """Build a section dataclass from a YAML mapping, ignoring unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping for {cls.__name__}, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class JourneyConfig:
    """Main configuration for the journey voice session."""

    engine: str = "console"
    dashboard_port: int = 8080

    # Turns per journey before it is closed regardless of content
    max_turns_per_journey: int = 30

    speech: SpeechConfig = field(default_factory=SpeechConfig)
    listening: ListeningConfig = field(default_factory=ListeningConfig)
    watchdog: WatchdogConfig = field(default_factory=WatchdogConfig)
    pauses: PauseConfig = field(default_factory=PauseConfig)

    @classmethod
    def load(cls, config_path: str = ".journey/config.yaml") -> "JourneyConfig":
        """Load config from YAML file.

        Args:
            config_path: Path to config file (relative or absolute)

        Returns:
            Loaded configuration (defaults if the file does not exist)

        Raises:
            ValueError: If a section has the wrong shape
        """
        path = Path(config_path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        max_turns = int(data.get("max_turns_per_journey", 30))
        if max_turns < 1:
            raise ValueError("max_turns_per_journey must be at least 1")

        return cls(
            engine=data.get("engine", "console"),
            dashboard_port=int(data.get("dashboard_port", 8080)),
            max_turns_per_journey=max_turns,
            speech=_section(SpeechConfig, data.get("speech")),
            listening=_section(ListeningConfig, data.get("listening")),
            watchdog=_section(WatchdogConfig, data.get("watchdog")),
            pauses=_section(PauseConfig, data.get("pauses")),
        )
