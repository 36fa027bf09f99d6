"""Deterministic fake speech engines and shared fixtures."""

import asyncio

import pytest

from journey_voice.config import (
    JourneyConfig,
    ListeningConfig,
    PauseConfig,
    SpeechConfig,
    WatchdogConfig,
)
from journey_voice.models import RecognitionResult, Utterance, Voice
from journey_voice.orchestrator import DialogueOrchestrator
from journey_voice.session_state import SessionStore
from journey_voice.speech_input import SpeechInputCoordinator
from journey_voice.speech_output import SpeechOutputCoordinator


class FakeRecognitionSession:
    """Recognition session driven by the test."""

    def __init__(self, engine: "FakeRecognitionEngine", language: str, listener):
        self.engine = engine
        self.language = language
        self.listener = listener
        self.started = False
        self.stop_calls = 0

    def start(self) -> None:
        if self.engine.fail_on_start:
            raise RuntimeError("microphone busy")
        self.started = True
        self.listener.on_start()

    def stop(self) -> None:
        self.stop_calls += 1
        if self.engine.auto_end:
            self.listener.on_end()

    # --- Test controls ---

    def say(self, text: str) -> None:
        self.listener.on_result([RecognitionResult(text, is_final=True)])

    def interim(self, text: str) -> None:
        self.listener.on_result([RecognitionResult(text, is_final=False)])

    def error(self, error: str = "no-speech") -> None:
        self.listener.on_error(error)

    def end(self) -> None:
        self.listener.on_end()


class FakeRecognitionEngine:
    """Creates FakeRecognitionSessions and remembers them."""

    def __init__(self, auto_end: bool = True, available: bool = True):
        self.auto_end = auto_end
        self.available = available
        self.fail_on_start = False
        self.sessions: list[FakeRecognitionSession] = []

    def create_session(self, language: str, listener) -> FakeRecognitionSession:
        session = FakeRecognitionSession(self, language, listener)
        self.sessions.append(session)
        return session

    @property
    def current(self) -> FakeRecognitionSession:
        return self.sessions[-1]


class FakeSynthesisEngine:
    """Records utterances; finishes, errors, raises or hangs on demand."""

    def __init__(self, mode: str = "end", voices: list[Voice] | None = None):
        self.mode = mode
        self.voices = voices if voices is not None else [Voice("ja-JP-Neural2-B", "ja-JP")]
        self.spoken: list[Utterance] = []
        self.cancel_count = 0
        self.voice_requests = 0
        self.fail_voices = False

    def get_voices(self) -> list[Voice]:
        self.voice_requests += 1
        if self.fail_voices:
            raise RuntimeError("voice list unavailable")
        return list(self.voices)

    def speak(self, utterance, on_end, on_error) -> None:
        if self.mode == "raise":
            raise RuntimeError("synthesis unavailable")
        self.spoken.append(utterance)
        loop = asyncio.get_running_loop()
        if self.mode == "end":
            loop.call_soon(on_end)
        elif self.mode == "error":
            loop.call_soon(on_error, "synthesis-failed")
        # "hang": never finishes on its own

    def cancel(self) -> None:
        self.cancel_count += 1

    @property
    def texts(self) -> list[str]:
        return [u.text for u in self.spoken]


async def wait_for(predicate, timeout: float = 1.0, interval: float = 0.005) -> bool:
    """Poll until predicate() is true or the timeout elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


def make_fast_config(max_turns: int = 30) -> JourneyConfig:
    """Configuration with every delay shrunk for tests."""
    return JourneyConfig(
        max_turns_per_journey=max_turns,
        speech=SpeechConfig(timeout=0.5),
        listening=ListeningConfig(silence_timeout=0.05, restart_settle=0.0),
        watchdog=WatchdogConfig(interval=0.01, settle_delay=0.02),
        pauses=PauseConfig(
            greeting=0, intro_retry=0, question=0, closing=0, next_journey=0, summary=0
        ),
    )


@pytest.fixture
def fast_config() -> JourneyConfig:
    return make_fast_config()


@pytest.fixture
def recognition() -> FakeRecognitionEngine:
    return FakeRecognitionEngine()


@pytest.fixture
def synthesis() -> FakeSynthesisEngine:
    return FakeSynthesisEngine()


@pytest.fixture
def speech_in(recognition, fast_config) -> SpeechInputCoordinator:
    return SpeechInputCoordinator(recognition, config=fast_config.listening)


@pytest.fixture
def speech_out(synthesis, fast_config) -> SpeechOutputCoordinator:
    return SpeechOutputCoordinator(synthesis, config=fast_config.speech)


@pytest.fixture
def orchestrator(speech_in, speech_out, fast_config) -> DialogueOrchestrator:
    return DialogueOrchestrator(SessionStore(), speech_in, speech_out, config=fast_config)
