"""Terminal speech engines: typed lines in, printed prompts out.

Useful for running a full session without a microphone or cloud
credentials. Every typed line arrives as one finalized recognition result,
so silence endpointing still decides when the utterance is complete.
"""

import asyncio
import sys
from typing import Callable, TextIO

from ..models import RecognitionResult, Utterance, Voice


class ConsoleRecognitionSession:
    """Delivers queued console lines to the listener until stopped."""

    def __init__(self, lines: "asyncio.Queue[str]", listener):
        self._lines = lines
        self._listener = listener
        self._task: asyncio.Task | None = None
        self._stopped = False

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._pump())

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._task and not self._task.done():
            self._task.cancel()
        asyncio.get_running_loop().call_soon(self._listener.on_end)

    async def _pump(self) -> None:
        self._listener.on_start()
        while True:
            line = await self._lines.get()
            if line.strip():
                self._listener.on_result([RecognitionResult(line, is_final=True)])


class ConsoleRecognitionEngine:
    """Reads stdin on a worker thread and hands lines to the active session."""

    available = True

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream or sys.stdin
        self._lines: asyncio.Queue[str] | None = None
        self._reader: asyncio.Task | None = None

    def create_session(self, language: str, listener) -> ConsoleRecognitionSession:
        if self._reader is None:
            self._lines = asyncio.Queue()
            self._reader = asyncio.get_running_loop().create_task(self._read_lines())
        return ConsoleRecognitionSession(self._lines, listener)

    async def _read_lines(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, self._stream.readline)
            if not line:
                # EOF
                break
            await self._lines.put(line.rstrip("\n"))


class ConsoleSynthesisEngine:
    """Prints each utterance instead of speaking it."""

    def __init__(self, language: str = "ja-JP"):
        self.language = language

    def get_voices(self) -> list[Voice]:
        return [Voice(name="console", language=self.language)]

    def speak(
        self,
        utterance: Utterance,
        on_end: Callable[[], None],
        on_error: Callable[[str], None]
    ) -> None:
        print(f"\n[Assistant] {utterance.text}\n> ", end="", flush=True)
        asyncio.get_running_loop().call_soon(on_end)

    def cancel(self) -> None:
        pass
