"""Speech engine implementations for different platforms.

The coordinators only talk to the protocols below, so any conforming engine
(a cloud service, a terminal, a test fake) can be swapped in.
"""

from typing import TYPE_CHECKING, Callable, Protocol, Sequence

from ..models import RecognitionResult, Utterance, Voice

if TYPE_CHECKING:
    from ..config import JourneyConfig


class RecognitionListener(Protocol):
    """Receives events from one recognition session."""

    def on_start(self) -> None:
        ...

    def on_result(self, results: Sequence[RecognitionResult]) -> None:
        """Called with the results that changed since the previous event."""
        ...

    def on_error(self, error: str) -> None:
        ...

    def on_end(self) -> None:
        ...


class RecognitionSession(Protocol):
    """One continuous, interim-enabled recognition session."""

    def start(self) -> None:
        """Begin recognizing. May raise if the engine refuses to start."""
        ...

    def stop(self) -> None:
        """Request the session to end. on_end follows asynchronously."""
        ...


class RecognitionEngine(Protocol):
    """Factory for recognition sessions."""

    available: bool

    def create_session(
        self,
        language: str,
        listener: RecognitionListener
    ) -> RecognitionSession:
        ...


class SynthesisEngine(Protocol):
    """Platform voice output."""

    def get_voices(self) -> list[Voice]:
        ...

    def speak(
        self,
        utterance: Utterance,
        on_end: Callable[[], None],
        on_error: Callable[[str], None]
    ) -> None:
        """Start speaking. Exactly one of on_end/on_error should follow."""
        ...

    def cancel(self) -> None:
        """Stop any utterance in progress. Safe when idle."""
        ...


def create_speech_engines(
    engine_type: str,
    config: "JourneyConfig | None" = None
) -> tuple[RecognitionEngine, SynthesisEngine]:
    """Factory to create a recognition/synthesis engine pair by type."""
    if engine_type == "console":
        from .console import ConsoleRecognitionEngine, ConsoleSynthesisEngine
        return ConsoleRecognitionEngine(), ConsoleSynthesisEngine()
    elif engine_type == "google":
        from .google_cloud import GoogleRecognitionEngine, GoogleSynthesisEngine
        return GoogleRecognitionEngine(), GoogleSynthesisEngine(
            language=config.speech.language if config else "ja-JP"
        )
    else:
        raise ValueError(f"Unknown speech engine type: {engine_type}")
