"""Tests for configuration loading."""

import pytest

from journey_voice.config import JourneyConfig


def test_missing_file_gives_defaults(tmp_path):
    config = JourneyConfig.load(str(tmp_path / "missing.yaml"))

    assert config.engine == "console"
    assert config.dashboard_port == 8080
    assert config.max_turns_per_journey == 30
    assert config.speech.language == "ja-JP"
    assert config.speech.pitch == pytest.approx(1.1)
    assert config.speech.rate == pytest.approx(0.9)
    assert config.listening.silence_timeout == pytest.approx(2.0)
    assert config.watchdog.interval == pytest.approx(0.25)
    assert config.pauses.summary == 3000


def test_load_overrides_sections(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "engine: google\n"
        "dashboard_port: 9000\n"
        "max_turns_per_journey: 5\n"
        "speech:\n"
        "  rate: 0.8\n"
        "  preferred_voice: Wavenet\n"
        "listening:\n"
        "  silence_timeout: 1.5\n"
        "  suppress_duplicates: false\n"
        "pauses:\n"
        "  question: 500\n"
        "  unknown_key: 1\n",
        encoding="utf-8",
    )

    config = JourneyConfig.load(str(path))

    assert config.engine == "google"
    assert config.dashboard_port == 9000
    assert config.max_turns_per_journey == 5
    assert config.speech.rate == pytest.approx(0.8)
    assert config.speech.pitch == pytest.approx(1.1)
    assert config.speech.preferred_voice == "Wavenet"
    assert config.listening.silence_timeout == pytest.approx(1.5)
    assert config.listening.suppress_duplicates is False
    assert config.pauses.question == 500
    assert config.pauses.greeting == 500


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert JourneyConfig.load(str(path)) == JourneyConfig()


@pytest.mark.parametrize("content", [
    "- just\n- a list\n",
    "max_turns_per_journey: 0\n",
    "speech: loud\n",
])
def test_invalid_config_raises(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        JourneyConfig.load(str(path))
