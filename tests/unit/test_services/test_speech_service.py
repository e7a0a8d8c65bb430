"""Unit tests for speech output."""
import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeSpeechEngine
from textreader.core.exceptions import SpeechError
from textreader.services.speech_service import (
    LANGUAGE_ERROR_MESSAGE, READY_MESSAGE, UTTERANCE_ID, Pyttsx3SpeechEngine,
    SpeechNotifier, SpeechStatus, find_voice,
)

pytestmark = pytest.mark.unit


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestSpeechNotifier:

    def test_speaks_with_fixed_utterance_id(self):
        engine = FakeSpeechEngine()
        assert SpeechNotifier(engine).notify("STOP.")
        assert engine.spoken == ["STOP."]
        assert engine.utterance_ids == [UTTERANCE_ID]
        assert engine.stops == 0

    def test_stops_current_utterance_first(self):
        engine = FakeSpeechEngine(speaking=True)
        SpeechNotifier(engine).notify("Exit.")
        assert engine.stops == 1
        assert engine.spoken == ["Exit."]

    def test_engine_failure_is_logged_not_raised(self, caplog):
        engine = FakeSpeechEngine(error=SpeechError("audio device busy"))
        assert SpeechNotifier(engine).notify("STOP.") is False
        assert "audio device busy" in caplog.text

    @pytest.mark.parametrize("status, expected", [
        (SpeechStatus.READY, [READY_MESSAGE]),
        (SpeechStatus.LANGUAGE_UNSUPPORTED, [LANGUAGE_ERROR_MESSAGE]),
        (SpeechStatus.INIT_FAILED, []),
    ])
    def test_engine_status_announcements(self, status, expected):
        engine = FakeSpeechEngine()
        SpeechNotifier(engine).on_engine_status(status)
        assert engine.spoken == expected


class TestFindVoice:

    def test_exact_match_preferred(self):
        british = SimpleNamespace(id="gb", languages=["en_GB"])
        american = SimpleNamespace(id="us", languages=[b"\x05en-US"])
        assert find_voice([british, american], "en_US") is american

    def test_base_language_fallback(self):
        british = SimpleNamespace(id="gb", languages=["en_GB"])
        assert find_voice([british], "en_US") is british

    def test_no_match(self):
        german = SimpleNamespace(id="de", languages=["de_DE"])
        assert find_voice([german], "en_US") is None
        assert find_voice(None, "en_US") is None


class TestPyttsx3SpeechEngine:

    def start_engine(self, mock_init, voices):
        driver = MagicMock()
        driver.getProperty.side_effect = lambda name: voices if name == 'voices' else None
        mock_init.return_value = driver

        statuses = []
        reported = threading.Event()
        engine = Pyttsx3SpeechEngine(language="en_US", rate=170, poll_interval=0.01)
        engine.start(lambda status: (statuses.append(status), reported.set()))
        assert reported.wait(2)
        return engine, driver, statuses

    @patch('textreader.services.speech_service.pyttsx3.init')
    def test_ready_and_speaks(self, mock_init):
        engine, driver, statuses = self.start_engine(
            mock_init, [SimpleNamespace(id="voice-us", languages=["en_US"])]
        )
        try:
            assert statuses == [SpeechStatus.READY]
            driver.setProperty.assert_any_call('rate', 170)
            driver.setProperty.assert_any_call('voice', "voice-us")

            engine.speak("STOP.")
            assert wait_for(lambda: driver.say.called)
            driver.say.assert_called_with("STOP.", UTTERANCE_ID)
            driver.stop.assert_called()
        finally:
            engine.shutdown()
        driver.endLoop.assert_called_once()

    @patch('textreader.services.speech_service.pyttsx3.init')
    def test_language_unsupported(self, mock_init):
        engine, _, statuses = self.start_engine(
            mock_init, [SimpleNamespace(id="voice-de", languages=["de_DE"])]
        )
        engine.shutdown()
        assert statuses == [SpeechStatus.LANGUAGE_UNSUPPORTED]

    @patch('textreader.services.speech_service.pyttsx3.init', side_effect=RuntimeError("no driver"))
    def test_init_failure(self, mock_init):
        statuses = []
        reported = threading.Event()
        engine = Pyttsx3SpeechEngine()
        engine.start(lambda status: (statuses.append(status), reported.set()))

        assert reported.wait(2)
        assert statuses == [SpeechStatus.INIT_FAILED]
        with pytest.raises(SpeechError):
            engine.speak("STOP.")
        engine.shutdown()

    def test_speak_before_start_raises(self):
        with pytest.raises(SpeechError):
            Pyttsx3SpeechEngine().speak("hello")
