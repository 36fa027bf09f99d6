"""Tests for the terminal speech engines and the engine factory."""

import io

import pytest

from conftest import make_fast_config, wait_for
from journey_voice.engines import create_speech_engines
from journey_voice.engines.console import ConsoleRecognitionEngine, ConsoleSynthesisEngine
from journey_voice.speech_input import SpeechInputCoordinator
from journey_voice.speech_output import SpeechOutputCoordinator


def test_factory_rejects_unknown_engine():
    with pytest.raises(ValueError, match="Unknown speech engine type"):
        create_speech_engines("telepathy")


def test_factory_builds_console_pair():
    recognition, synthesis = create_speech_engines("console", make_fast_config())

    assert isinstance(recognition, ConsoleRecognitionEngine)
    assert isinstance(synthesis, ConsoleSynthesisEngine)
    assert recognition.available is True


@pytest.mark.asyncio
async def test_typed_line_becomes_utterance():
    config = make_fast_config()
    engine = ConsoleRecognitionEngine(stream=io.StringIO("早起きしたいけれど、早く寝ることができない\n"))
    speech_in = SpeechInputCoordinator(engine, config=config.listening)
    published = []
    speech_in.add_transcript_listener(published.append)

    await speech_in.start_listening()

    assert await wait_for(lambda: published)
    assert published == ["早起きしたいけれど、早く寝ることができない"]
    assert speech_in.state == "idle"


@pytest.mark.asyncio
async def test_console_synthesis_prints_prompt(capsys):
    speech_out = SpeechOutputCoordinator(ConsoleSynthesisEngine(), config=make_fast_config().speech)

    await speech_out.speak("こんにちは")

    assert "[Assistant] こんにちは" in capsys.readouterr().out
    assert speech_out.select_voice(await speech_out.load_voices()).name == "console"


def test_console_synthesis_cancel_is_harmless():
    engine = ConsoleSynthesisEngine()
    engine.cancel()

    assert engine.get_voices()[0].language == "ja-JP"


@pytest.mark.asyncio
async def test_console_session_stop_ends_once():
    ended = []

    class Listener:
        def on_start(self):
            pass

        def on_result(self, results):
            pass

        def on_error(self, error):
            pass

        def on_end(self):
            ended.append(True)

    engine = ConsoleRecognitionEngine(stream=io.StringIO(""))
    session = engine.create_session("ja-JP", Listener())
    session.start()
    session.stop()
    session.stop()

    assert await wait_for(lambda: ended)
    assert ended == [True]
