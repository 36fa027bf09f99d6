"""Speech input coordination.

Wraps a continuous recognition engine and turns its partial-result stream
into one finished utterance per listening session:

- Finalized segments accumulate in a buffer; a segment the buffer already
  ends with is treated as a double delivery and dropped.
- Every accepted segment re-arms a silence timer. When it fires the session
  is stopped (silence endpointing).
- When the session ends, the buffered text is published once to transcript
  listeners.

Exactly one recognition session is ever active. Each session gets a token,
and events carrying an old token (late callbacks from a stopped or
superseded session) are ignored.
"""

import asyncio
import logging
from typing import Any, Callable, Sequence

from .config import ListeningConfig
from .engines import RecognitionEngine, RecognitionSession
from .models import ListeningState, RecognitionResult

logger = logging.getLogger(__name__)


class _SessionListener:
    """Forwards engine events tagged with the session token."""

    def __init__(self, coordinator: "SpeechInputCoordinator", token: int):
        self._coordinator = coordinator
        self._token = token

    def on_start(self) -> None:
        self._coordinator._handle_start(self._token)

    def on_result(self, results: Sequence[RecognitionResult]) -> None:
        self._coordinator._handle_result(self._token, results)

    def on_error(self, error: str) -> None:
        self._coordinator._handle_error(self._token, error)

    def on_end(self) -> None:
        self._coordinator._handle_end(self._token)


class SpeechInputCoordinator:
    """Lifecycle of the microphone: idle -> starting -> listening -> stopping -> idle."""

    def __init__(
        self,
        engine: RecognitionEngine,
        language: str = "ja-JP",
        config: ListeningConfig | None = None
    ):
        """Initialize the coordinator.

        Args:
            engine: Platform recognition engine
            language: Recognition locale
            config: Endpointing and deduplication settings
        """
        self.engine = engine
        self.language = language
        self.config = config or ListeningConfig()

        self.state: ListeningState = "idle"
        self.transcript: str = ""

        self._final_text = ""
        self._session: RecognitionSession | None = None
        self._token = 0
        self._silence_timer: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[str], Any]] = []

    @property
    def is_listening(self) -> bool:
        """True once the engine has confirmed the session started."""
        return self.state == "listening"

    @property
    def finalized_text(self) -> str:
        """Finalized text accumulated in the current session."""
        return self._final_text

    def add_transcript_listener(self, callback: Callable[[str], Any]) -> None:
        """Add a callback for finished utterances.

        Args:
            callback: Called once per listening session that produced text
                      Signature: callback(transcript: str) -> None
        """
        self._listeners.append(callback)

    def remove_transcript_listener(self, callback: Callable[[str], Any]) -> None:
        """Remove a transcript listener."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def set_transcript(self, text: str) -> None:
        """Overwrite the exposed transcript (cleared to acknowledge it)."""
        self.transcript = text

    async def start_listening(self) -> None:
        """Begin a new listening session unless one is already active."""
        if self.state in ("starting", "listening"):
            return

        if not getattr(self.engine, "available", True):
            logger.error("Speech recognition is not supported on this platform")
            return

        if self._session is not None:
            # Previous session is still winding down; supersede it
            logger.info("Superseding recognition session that is still stopping")
            self._session = None

        self._token += 1
        token = self._token
        self.state = "starting"
        self._reset_buffer()

        # Let the previous engine instance release the microphone
        if self.config.restart_settle > 0:
            await asyncio.sleep(self.config.restart_settle)
        if token != self._token or self.state != "starting":
            return

        try:
            session = self.engine.create_session(self.language, _SessionListener(self, token))
            self._session = session
            session.start()
        except Exception as e:
            logger.error(f"Failed to start recognition: {e}")
            if token == self._token:
                self._session = None
                self.state = "idle"

    def stop_listening(self) -> None:
        """Stop the current session. Safe to call from any state."""
        self._cancel_silence_timer()

        if self._session is None:
            if self.state == "starting":
                # Abort a start still in its settle delay
                self._token += 1
            self.state = "idle"
            return

        if self.state == "stopping":
            return

        self.state = "stopping"
        try:
            self._session.stop()
        except Exception as e:
            logger.warning(f"Error stopping recognition: {e}")

    # --- Engine events ---

    def _handle_start(self, token: int) -> None:
        if token != self._token:
            return
        logger.info("Recognition started")
        if self.state == "starting":
            self.state = "listening"
        self._reset_buffer()
        self.transcript = ""

    def _handle_result(self, token: int, results: Sequence[RecognitionResult]) -> None:
        if token != self._token:
            return

        final = "".join(r.transcript for r in results if r.is_final)
        interim = "".join(r.transcript for r in results if not r.is_final)

        if final.strip():
            if self._accept_segment(final):
                self._final_text += final
                self._arm_silence_timer(token)
            else:
                logger.info(f"Duplicate transcript detected, ignoring: {final}")

        if final or interim:
            self.transcript = self._final_text + interim

    def _handle_error(self, token: int, error: str) -> None:
        if token != self._token:
            return
        # no-speech and every other engine error end the session quietly.
        # The engine may never deliver on_end afterwards, so finish here.
        logger.warning(f"Recognition error: {error}")
        session = self._session
        self._finish_session()
        if session is not None:
            try:
                session.stop()
            except Exception as e:
                logger.warning(f"Error stopping recognition after failure: {e}")

    def _handle_end(self, token: int) -> None:
        if token != self._token:
            return
        logger.info("Recognition ended")
        self._finish_session()

    def _finish_session(self) -> None:
        """Return to idle and publish whatever was finalized."""
        # Any further event from this session is stale
        self._token += 1
        self._cancel_silence_timer()
        self._session = None
        self.state = "idle"

        final = self._final_text
        self._reset_buffer()
        self.transcript = final
        if final:
            logger.info(f"Final transcript: {final}")
            self._publish(final)

    # --- Helpers ---

    def _accept_segment(self, segment: str) -> bool:
        """Decide whether a non-blank finalized segment extends the buffer."""
        if not self.config.suppress_duplicates:
            return True
        return not self._final_text.strip().endswith(segment.strip())

    def _arm_silence_timer(self, token: int) -> None:
        self._cancel_silence_timer()
        loop = asyncio.get_running_loop()
        self._silence_timer = loop.call_later(
            self.config.silence_timeout, self._on_silence, token
        )

    def _on_silence(self, token: int) -> None:
        self._silence_timer = None
        if token != self._token:
            return
        logger.info("Silence detected, stopping")
        self.stop_listening()

    def _cancel_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _reset_buffer(self) -> None:
        self._final_text = ""

    def _publish(self, transcript: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(transcript)
            except Exception:
                logger.exception("Transcript listener failed")
