"""Tests for the listening watchdog."""

import asyncio

import pytest

from conftest import FakeRecognitionEngine, wait_for
from journey_voice.orchestrator import DialogueOrchestrator
from journey_voice.session_state import SessionStore
from journey_voice.speech_input import SpeechInputCoordinator
from journey_voice.watchdog import ListeningWatchdog


class Flag:
    def __init__(self, value: bool):
        self.value = value
        self.restarts = 0

    def __call__(self) -> bool:
        return self.value

    async def restart(self) -> None:
        self.restarts += 1
        self.value = False


class TestCheckOnce:
    """A single supervision pass."""

    @pytest.mark.asyncio
    async def test_restarts_when_drop_persists(self):
        flag = Flag(True)
        watchdog = ListeningWatchdog(flag, flag.restart, interval=0.01, settle_delay=0.01)
        watchdog._running = True

        assert await watchdog.check_once() is True
        assert flag.restarts == 1
        assert watchdog.restart_count == 1

    @pytest.mark.asyncio
    async def test_does_nothing_when_healthy(self):
        flag = Flag(False)
        watchdog = ListeningWatchdog(flag, flag.restart, interval=0.01, settle_delay=0.01)
        watchdog._running = True

        assert await watchdog.check_once() is False
        assert flag.restarts == 0

    @pytest.mark.asyncio
    async def test_recovery_during_settle_cancels_restart(self):
        flag = Flag(True)
        watchdog = ListeningWatchdog(flag, flag.restart, interval=0.01, settle_delay=0.05)
        watchdog._running = True

        check = asyncio.create_task(watchdog.check_once())
        await asyncio.sleep(0.01)
        flag.value = False

        assert await check is False
        assert flag.restarts == 0


class TestLoop:
    """Start/stop of the monitoring loop."""

    @pytest.mark.asyncio
    async def test_loop_restarts_and_stops(self):
        flag = Flag(True)
        watchdog = ListeningWatchdog(flag, flag.restart, interval=0.01, settle_delay=0.01)

        await watchdog.start()
        assert watchdog.is_running is True
        assert await wait_for(lambda: flag.restarts == 1)

        await watchdog.stop()
        assert watchdog.is_running is False

        flag.value = True
        await asyncio.sleep(0.05)
        assert flag.restarts == 1

    @pytest.mark.asyncio
    async def test_restart_failure_keeps_loop_alive(self):
        attempts = []

        async def failing_restart():
            attempts.append(1)
            raise RuntimeError("microphone gone")

        watchdog = ListeningWatchdog(lambda: True, failing_restart, interval=0.01, settle_delay=0.0)
        await watchdog.start()
        try:
            assert await wait_for(lambda: len(attempts) >= 2)
        finally:
            await watchdog.stop()


class TestSessionSupervision:
    """The orchestrator's watchdog keeps the microphone armed."""

    @pytest.mark.asyncio
    async def test_dropped_microphone_is_restarted(self, orchestrator, recognition):
        await orchestrator.start_session()
        try:
            recognition.current.end()
            assert orchestrator.speech_in.state == "idle"

            assert await wait_for(lambda: orchestrator.speech_in.is_listening)
            assert len(recognition.sessions) == 2
            assert orchestrator.watchdog.restart_count == 1
        finally:
            await orchestrator.end_session()

    @pytest.mark.asyncio
    async def test_no_restart_while_turn_is_held(self, orchestrator, recognition):
        await orchestrator.start_session()
        try:
            orchestrator._hold("processing")
            orchestrator.speech_in.stop_listening()

            await asyncio.sleep(0.1)
            assert orchestrator.speech_in.is_listening is False
            assert orchestrator.watchdog.restart_count == 0
        finally:
            await orchestrator.end_session()

    @pytest.mark.asyncio
    async def test_no_restart_after_session_ends(self, orchestrator, recognition):
        await orchestrator.start_session()
        await orchestrator.end_session()

        await asyncio.sleep(0.1)
        assert len(recognition.sessions) == 1
        assert orchestrator.speech_in.is_listening is False

    @pytest.mark.asyncio
    async def test_errored_stream_without_end_event_is_restarted(self, fast_config, speech_out):
        recognition = FakeRecognitionEngine(auto_end=False)
        orchestrator = DialogueOrchestrator(
            SessionStore(),
            SpeechInputCoordinator(recognition, config=fast_config.listening),
            speech_out,
            config=fast_config,
        )
        await orchestrator.start_session()
        try:
            recognition.current.error("network")

            assert await wait_for(lambda: len(recognition.sessions) == 2)
            assert await wait_for(lambda: orchestrator.speech_in.is_listening)
            assert orchestrator.watchdog.restart_count == 1
        finally:
            await orchestrator.end_session()
