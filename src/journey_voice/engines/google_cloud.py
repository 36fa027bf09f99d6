"""Google Cloud speech engines with local audio via sounddevice.

Recognition streams the default microphone to Cloud Speech-to-Text with
interim results enabled. Synthesis renders text with Cloud Text-to-Speech
and plays it on the default output device.

Audio callbacks and the gRPC stream run on worker threads; every event is
handed back to the asyncio loop with call_soon_threadsafe.
"""

import asyncio
import logging
import queue
import threading
from typing import Callable, Iterator

import numpy as np
import sounddevice as sd
from google.cloud import speech
from google.cloud import texttospeech

from ..models import RecognitionResult, Utterance, Voice

logger = logging.getLogger(__name__)

# Browser-style pitch multiplier (1.0 = neutral) to Cloud TTS semitones
PITCH_SEMITONES_PER_UNIT = 20.0

WAV_HEADER_BYTES = 44


class GoogleRecognitionSession:
    """One streaming_recognize call fed from the microphone."""

    def __init__(
        self,
        client: speech.SpeechClient,
        language: str,
        listener,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 100
    ):
        self._client = client
        self._language = language
        self._listener = listener
        self.sample_rate = sample_rate
        self.chunk_size = int(sample_rate * chunk_duration_ms / 1000)

        self._audio: queue.Queue[bytes | None] = queue.Queue()
        self._running = False
        self._stream: sd.InputStream | None = None
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def start(self) -> None:
        """Open the microphone and start the recognition thread."""
        self._loop = asyncio.get_running_loop()
        self._running = True

        def input_callback(indata, frames, time_info, status):
            if status:
                logger.debug(f"Audio input status: {status}")
            if not self._running:
                return
            # float32 -> int16 PCM
            audio_int16 = (indata[:, 0] * 32767).astype(np.int16)
            self._audio.put(audio_int16.tobytes())

        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype=np.float32,
            blocksize=self.chunk_size,
            callback=input_callback
        )
        self._stream.start()

        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        self._emit(self._listener.on_start)

    def stop(self) -> None:
        """Close the request stream; the recognizer then finishes and ends."""
        if not self._running:
            return
        self._running = False
        self._audio.put(None)

    def _requests(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            chunk = self._audio.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run(self) -> None:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self._language,
            enable_automatic_punctuation=True,
        )
        streaming_config = speech.StreamingRecognitionConfig(
            config=config,
            interim_results=True,
        )

        try:
            responses = self._client.streaming_recognize(
                config=streaming_config,
                requests=self._requests(),
            )
            for response in responses:
                results = [
                    RecognitionResult(
                        transcript=result.alternatives[0].transcript,
                        is_final=result.is_final,
                    )
                    for result in response.results
                    if result.alternatives
                ]
                if results:
                    self._emit(self._listener.on_result, results)
        except Exception as e:
            self._emit(self._listener.on_error, str(e))
        finally:
            self._running = False
            self._close_stream()
            self._emit(self._listener.on_end)

    def _close_stream(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing microphone: {e}")
            self._stream = None

    def _emit(self, callback: Callable, *args) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback, *args)


class GoogleRecognitionEngine:
    """Creates microphone-backed Cloud Speech sessions."""

    def __init__(self, client: speech.SpeechClient | None = None, sample_rate: int = 16000):
        self._client = client
        self.sample_rate = sample_rate

    @property
    def available(self) -> bool:
        """True when an input device exists."""
        try:
            sd.query_devices(kind="input")
        except Exception as e:
            logger.error(f"No microphone available: {e}")
            return False
        return True

    def create_session(self, language: str, listener) -> GoogleRecognitionSession:
        if self._client is None:
            self._client = speech.SpeechClient()
        return GoogleRecognitionSession(
            self._client, language, listener, sample_rate=self.sample_rate
        )


class GoogleSynthesisEngine:
    """Cloud Text-to-Speech rendering played through sounddevice."""

    def __init__(
        self,
        language: str = "ja-JP",
        sample_rate: int = 24000,
        client: texttospeech.TextToSpeechClient | None = None
    ):
        self.language = language
        self.sample_rate = sample_rate
        self._client = client
        self._voices: list[Voice] | None = None
        self._task: asyncio.Task | None = None

    def _get_client(self) -> texttospeech.TextToSpeechClient:
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def get_voices(self) -> list[Voice]:
        if self._voices is None:
            response = self._get_client().list_voices(language_code=self.language)
            self._voices = [
                Voice(
                    name=voice.name,
                    language=self.language if self.language in voice.language_codes
                    else voice.language_codes[0],
                )
                for voice in response.voices
                if voice.language_codes
            ]
        return self._voices

    def speak(
        self,
        utterance: Utterance,
        on_end: Callable[[], None],
        on_error: Callable[[str], None]
    ) -> None:
        self._task = asyncio.get_running_loop().create_task(
            self._speak(utterance, on_end, on_error)
        )

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            sd.stop()
        self._task = None

    async def _speak(
        self,
        utterance: Utterance,
        on_end: Callable[[], None],
        on_error: Callable[[str], None]
    ) -> None:
        try:
            audio = await asyncio.to_thread(self._synthesize, utterance)
            sd.play(audio, samplerate=self.sample_rate)
            while sd.get_stream().active:
                await asyncio.sleep(0.05)
        except asyncio.CancelledError:
            sd.stop()
            raise
        except Exception as e:
            on_error(str(e))
            return
        on_end()

    def _synthesize(self, utterance: Utterance) -> np.ndarray:
        """Render an utterance to int16 PCM samples."""
        if utterance.voice is not None:
            voice = texttospeech.VoiceSelectionParams(
                language_code=utterance.language,
                name=utterance.voice.name,
            )
        else:
            voice = texttospeech.VoiceSelectionParams(language_code=utterance.language)

        pitch = max(-20.0, min(20.0, (utterance.pitch - 1.0) * PITCH_SEMITONES_PER_UNIT))
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            speaking_rate=utterance.rate,
            pitch=pitch,
        )

        response = self._get_client().synthesize_speech(
            input=texttospeech.SynthesisInput(text=utterance.text),
            voice=voice,
            audio_config=audio_config,
        )

        pcm = response.audio_content
        if pcm[:4] == b"RIFF":
            pcm = pcm[WAV_HEADER_BYTES:]
        return np.frombuffer(pcm, dtype=np.int16)
