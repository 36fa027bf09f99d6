"""Speech output coordination.

Serializes synthesis requests so that at most one utterance plays at a time,
and guarantees every ``speak`` call settles: on normal completion, on engine
error, on cancellation, or after a hard timeout. Callers treat speech as
best-effort, so nothing here raises for engine failures.
"""

import asyncio
import logging

from .config import SpeechConfig
from .engines import SynthesisEngine
from .models import Utterance, Voice

logger = logging.getLogger(__name__)


class SpeechOutputCoordinator:
    """The only component allowed to drive the synthesis engine."""

    def __init__(self, engine: SynthesisEngine, config: SpeechConfig | None = None):
        """Initialize the coordinator.

        Args:
            engine: Platform synthesis engine
            config: Voice, pitch, rate and timeout settings
        """
        self.engine = engine
        self.config = config or SpeechConfig()
        self._generation = 0
        self._pending: asyncio.Future | None = None
        self._voices: list[Voice] | None = None

    @property
    def is_speaking(self) -> bool:
        """True while an utterance is in flight."""
        return self._pending is not None and not self._pending.done()

    async def load_voices(self) -> list[Voice]:
        """List the engine's voices once, off the event loop.

        Engines may answer with a network round-trip, so the call runs in a
        worker thread and a successful answer is cached.
        """
        if self._voices is None:
            try:
                self._voices = await asyncio.to_thread(self.engine.get_voices)
            except Exception as e:
                logger.warning(f"Could not list synthesis voices: {e}")
                return []
        return self._voices

    def select_voice(self, voices: list[Voice]) -> Voice | None:
        """Pick a voice for the configured locale.

        Preference order: a locale voice whose name contains the preferred
        provider fragment, then any locale voice, else the engine default.
        """
        local = [v for v in voices if v.language == self.config.language]
        for voice in local:
            if self.config.preferred_voice and self.config.preferred_voice in voice.name:
                return voice
        return local[0] if local else None

    async def speak(
        self,
        text: str,
        pitch: float | None = None,
        rate: float | None = None,
        delay_ms: int = 0
    ) -> None:
        """Speak text and wait until it has finished.

        Args:
            text: Text to speak
            pitch: Pitch multiplier (default from config)
            rate: Rate multiplier (default from config)
            delay_ms: Pause before starting, in milliseconds
        """
        self._generation += 1
        generation = self._generation

        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
            if generation != self._generation:
                logger.info(f"Speech superseded during pause, skipping: {text[:40]}")
                return

        voice = self.select_voice(await self.load_voices())
        if generation != self._generation:
            logger.info(f"Speech superseded, skipping: {text[:40]}")
            return

        # At most one utterance plays at a time
        self._stop_current()

        done: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending = done

        def _finish() -> None:
            if not done.done():
                done.set_result(None)

        def _on_error(error: str) -> None:
            logger.warning(f"Speech synthesis error: {error}")
            _finish()

        utterance = Utterance(
            text=text,
            language=self.config.language,
            pitch=self.config.pitch if pitch is None else pitch,
            rate=self.config.rate if rate is None else rate,
            voice=voice,
        )

        logger.info(f"Speaking: {text}")
        try:
            self.engine.speak(utterance, on_end=_finish, on_error=_on_error)
        except Exception:
            logger.exception("Speech synthesis failed to start")
            _finish()

        try:
            await asyncio.wait_for(asyncio.shield(done), timeout=self.config.timeout)
        except TimeoutError:
            logger.warning(f"Speech did not finish within {self.config.timeout}s, continuing")
            _finish()
        finally:
            if self._pending is done:
                self._pending = None

    def cancel(self) -> None:
        """Stop any in-flight or pending utterance. Safe when idle."""
        self._generation += 1
        self._stop_current()

    def _stop_current(self) -> None:
        try:
            self.engine.cancel()
        except Exception as e:
            logger.warning(f"Speech cancel failed: {e}")
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None
