"""Dialogue orchestration for the journey reflection session.

This is the state machine that turns each finished utterance into a state
mutation and a spoken prompt, and owns the turn-taking loop:

    listen -> utterance -> mutate state -> speak -> listen

Phases and transitions:

    intro              match "A したい ... B できない"  -> journey1
    intro              no match                         -> intro (re-prompt)
    journeyN           answer, turn < cap               -> journeyN (follow-up)
    journeyN           answer on the last turn          -> extract_journeyN
    extract_journeyN   insight                          -> journeyN+1 / summary
    summary            insight                          -> reflection
    reflection         (terminal)

Only one turn is processed at a time. The guard is taken before any await,
so a second utterance arriving mid-turn is dropped rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from .config import JourneyConfig
from .models import DialogueEntry, TurnState, journey_number
from .prompts import (
    FOLLOW_UP_RECORDED,
    GREETING,
    INTRO_RETRY,
    JOURNEY_CLOSING,
    SUMMARY_PROMPT,
    extract_variables,
    follow_up,
    journey_prompt,
)
from .session_state import SessionStore
from .speech_input import SpeechInputCoordinator
from .speech_output import SpeechOutputCoordinator
from .watchdog import ListeningWatchdog

if TYPE_CHECKING:
    from .dashboard.conversation_logger import ConversationLogger

logger = logging.getLogger(__name__)

HeldTurn = Literal["processing", "speaking"]


@dataclass
class Prompt:
    """What to say at the end of a turn."""

    text: str
    delay_ms: int = 0


class DialogueOrchestrator:
    """Drives the session between the store and the two speech coordinators."""

    def __init__(
        self,
        store: SessionStore,
        speech_in: SpeechInputCoordinator,
        speech_out: SpeechOutputCoordinator,
        config: JourneyConfig | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Session state, mutated only from here
            speech_in: Microphone/recognition coordinator
            speech_out: Synthesis coordinator
            config: Turn cap, pauses and watchdog timing
        """
        self.store = store
        self.speech_in = speech_in
        self.speech_out = speech_out
        self.config = config or JourneyConfig()
        self.conversation_logger: ConversationLogger | None = None

        self.started = False
        self._epoch = 0
        self._turn: HeldTurn | None = None
        self._turn_id = 0
        self._tasks: set[asyncio.Task] = set()

        self.watchdog = ListeningWatchdog(
            should_restart=self._needs_restart,
            restart=self.speech_in.start_listening,
            interval=self.config.watchdog.interval,
            settle_delay=self.config.watchdog.settle_delay,
        )
        self.speech_in.add_transcript_listener(self._on_transcript)

    # --- Turn state ---

    @property
    def turn_state(self) -> TurnState:
        """Idle | Listening | Processing | Speaking."""
        if self._turn is not None:
            return self._turn
        return "listening" if self.speech_in.is_listening else "idle"

    @property
    def is_busy(self) -> bool:
        """True while a turn holds the guard."""
        return self._turn is not None

    def _hold(self, turn: HeldTurn) -> int:
        self._turn = turn
        self._turn_id += 1
        return self._turn_id

    def _release(self, turn_id: int) -> None:
        # A forced recovery may already have released this turn
        if turn_id == self._turn_id:
            self._turn = None

    def _needs_restart(self) -> bool:
        return self.started and self._turn is None and self.speech_in.state == "idle"

    # --- Session controls ---

    async def start_session(self) -> None:
        """Greet the user (in intro) and start the listen loop."""
        if self.started:
            return
        self.started = True
        epoch = self._epoch

        if self.store.phase == "intro":
            logger.info("Triggering initial greeting")
            turn_id = self._hold("speaking")
            try:
                await self._log_assistant(GREETING)
                await self.speech_out.speak(GREETING, delay_ms=self.config.pauses.greeting)
            finally:
                self._release(turn_id)
        else:
            logger.info(f"Resuming session in phase {self.store.phase}")

        if epoch != self._epoch:
            logger.info("Session ended during the greeting, not starting to listen")
            return
        await self.speech_in.start_listening()
        if epoch != self._epoch:
            self.speech_in.stop_listening()
            return
        await self.watchdog.start()

    async def end_session(self) -> None:
        """Stop all audio activity and reset the session to its initial state."""
        logger.info("Ending session")
        self.started = False
        # Invalidates a start_session still awaiting the greeting
        self._epoch += 1
        await self.watchdog.stop()

        self._turn = None
        self._turn_id += 1
        self.speech_out.cancel()
        self.speech_in.stop_listening()
        self.speech_in.set_transcript("")

        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        self.store.reset_session()
        await self._log_system("Session ended and reset")

    async def recover(self) -> None:
        """Manual recovery: clear a stuck turn and get the microphone back."""
        if not self.started:
            return
        logger.info("Manual restart triggered")

        if self._turn is not None:
            logger.info("Force resetting stuck state")
            self._turn = None
            self._turn_id += 1
            self.speech_out.cancel()
            await self._log_system("Recovered from a stuck turn")

        if not self.speech_in.is_listening:
            await self.speech_in.start_listening()

    def snapshot(self) -> dict:
        """Read-only view of the session for the presentation layer."""
        data = self.store.snapshot()
        data.update({
            "started": self.started,
            "turn_state": self.turn_state,
            "is_listening": self.speech_in.is_listening,
            "transcript": self.speech_in.transcript,
        })
        return data

    # --- Turn processing ---

    def _on_transcript(self, text: str) -> None:
        """Schedule a turn for a transcript published by the input coordinator."""
        if not self.started:
            return
        if self.is_busy:
            logger.info(f"Turn in progress, dropping utterance: {text}")
            return
        self._track(asyncio.create_task(self.process_utterance(text)))

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def process_utterance(self, text: str) -> bool:
        """Process one finished utterance as a full turn.

        Args:
            text: Recognized utterance

        Returns:
            True if the turn ran, False if it was dropped or failed
        """
        clean = text.strip()
        if not clean:
            return False
        if self.is_busy:
            logger.info(f"Turn in progress, dropping utterance: {clean}")
            return False

        turn_id = self._hold("processing")
        epoch = self._epoch
        logger.info(f"Processing utterance in phase {self.store.phase}: {clean}")
        self.speech_in.stop_listening()

        try:
            await self._log_user(clean)
            prompt = self._advance(clean)

            if prompt is not None:
                if turn_id == self._turn_id:
                    self._turn = "speaking"
                await self._log_assistant(prompt.text)
                await self.speech_out.speak(prompt.text, delay_ms=prompt.delay_ms)

            if epoch != self._epoch:
                # Session was ended mid-turn; leave the microphone off
                return False
            self.speech_in.set_transcript("")
            await self.speech_in.start_listening()
            return True
        except Exception:
            logger.exception("Session processing error")
            return False
        finally:
            self._release(turn_id)

    def _advance(self, text: str) -> Prompt | None:
        """Apply the state transition for one utterance.

        All mutations happen here, synchronously, before anything is spoken.
        """
        phase = self.store.phase
        pauses = self.config.pauses

        if phase == "intro":
            variables = extract_variables(text)
            if variables is None:
                logger.warning(f"Intro match failed for: {text}")
                return Prompt(INTRO_RETRY, pauses.intro_retry)

            self.store.set_variables(A=variables.A, B=variables.B)
            self.store.reset_cycle()
            self.store.set_phase("journey1")
            return Prompt(journey_prompt(1).question(self.store.variables), pauses.question)

        number = journey_number(phase)

        if phase.startswith("journey") and number is not None:
            journey = journey_prompt(number)
            cycle = self.store.cycle
            question = journey.question(self.store.variables) if cycle == 0 else FOLLOW_UP_RECORDED
            self.store.append_history(journey.key, DialogueEntry(question=question, answer=text))

            if cycle < self.config.max_turns_per_journey - 1:
                self.store.increment_cycle()
                logger.info(f"Advancing cycle in {phase}: {cycle + 1}")
                return Prompt(follow_up(text), pauses.question)

            logger.info(f"Finishing {phase}, moving to extract")
            self.store.reset_cycle()
            self.store.set_phase(f"extract_{phase}")
            return Prompt(JOURNEY_CLOSING, pauses.closing)

        if phase.startswith("extract_") and number is not None:
            self.store.append_insight(text)
            logger.info(f"Insight recorded for journey {number}: {text}")

            if number < 4:
                next_number = number + 1
                self.store.reset_cycle()
                self.store.set_phase(f"journey{next_number}")
                question = journey_prompt(next_number).question(self.store.variables)
                return Prompt(question, pauses.next_journey)

            self.store.set_phase("summary")
            return Prompt(SUMMARY_PROMPT, pauses.summary)

        if phase == "summary":
            self.store.append_insight(text)
            self.store.set_phase("reflection")
            return None

        logger.info(f"Session complete, nothing to do for: {text}")
        return None

    # --- Conversation log ---

    async def _log_user(self, text: str) -> None:
        if self.conversation_logger:
            await self.conversation_logger.log_user_speech(text, phase=self.store.phase)

    async def _log_assistant(self, text: str) -> None:
        if self.conversation_logger:
            await self.conversation_logger.log_assistant_response(text, phase=self.store.phase)

    async def _log_system(self, message: str) -> None:
        if self.conversation_logger:
            await self.conversation_logger.log_system_event(message)
