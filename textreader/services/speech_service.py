"""Speech output: a pyttsx3 engine and the stop-then-speak notifier."""
from __future__ import annotations
import logging
import queue
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

import pyttsx3

from ..core.exceptions import SpeechError

logger = logging.getLogger(__name__)

UTTERANCE_ID = "text_reader_output"
READY_MESSAGE = "Text reader ready. Tap scan button to begin."
LANGUAGE_ERROR_MESSAGE = "Text-to-Speech initialization failed due to language error."


class SpeechStatus(str, Enum):
    READY = "ready"
    INIT_FAILED = "init_failed"
    LANGUAGE_UNSUPPORTED = "language_unsupported"


StatusCallback = Callable[[SpeechStatus], None]


class SpeechEngine(ABC):
    """Speech synthesis collaborator."""

    @abstractmethod
    def start(self, on_status: Optional[StatusCallback] = None) -> None:
        """Initialize asynchronously and report a SpeechStatus via ``on_status``."""

    @abstractmethod
    def speak(self, text: str, interrupt: bool = True, utterance_id: str = UTTERANCE_ID) -> None:
        """Speak ``text``. With ``interrupt`` anything pending is dropped first."""

    @abstractmethod
    def is_speaking(self) -> bool:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the current utterance."""

    def shutdown(self) -> None:
        pass


def _voice_languages(voice) -> list:
    languages = []
    for lang in getattr(voice, 'languages', None) or []:
        if isinstance(lang, bytes):
            lang = lang.decode('utf-8', errors='ignore')
        languages.append(str(lang).strip('\x05').lower().replace('-', '_'))
    return languages


def find_voice(voices, language: str):
    """Pick the first voice whose language matches ``language`` (e.g. ``en_US``)."""
    wanted = language.lower().replace('-', '_')
    base = wanted.split('_')[0]
    fallback = None
    for voice in voices or []:
        languages = _voice_languages(voice)
        if wanted in languages:
            return voice
        if fallback is None and any(lang.split('_')[0] == base for lang in languages):
            fallback = voice
    return fallback


class Pyttsx3SpeechEngine(SpeechEngine):
    """pyttsx3 driven from a dedicated thread with an external event loop.

    The pyttsx3 engine is created and used only on its own thread; callers
    enqueue commands. Interrupting speech drops queued commands and stops the
    current utterance before the new one is queued.
    """

    def __init__(self, language: str = "en_US", rate: int = 150, poll_interval: float = 0.05):
        self.language = language
        self.rate = rate
        self.poll_interval = poll_interval
        self._commands: "queue.Queue[tuple]" = queue.Queue()
        self._shutdown_event = threading.Event()
        self._speaking = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._failed = False

    def start(self, on_status: Optional[StatusCallback] = None) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, args=(on_status,), name="speech", daemon=True
        )
        self._thread.start()

    def _report(self, on_status: Optional[StatusCallback], status: SpeechStatus) -> None:
        if on_status is None:
            return
        try:
            on_status(status)
        except Exception as e:
            logger.exception(f"Speech status callback failed: {e}")

    def _run(self, on_status: Optional[StatusCallback]) -> None:
        try:
            engine = pyttsx3.init()
            engine.setProperty('rate', self.rate)
            voice = find_voice(engine.getProperty('voices'), self.language)
            if voice is not None:
                engine.setProperty('voice', voice.id)
        except Exception as e:
            self._failed = True
            logger.error(f"TTS initialization failed: {e}", exc_info=True)
            self._report(on_status, SpeechStatus.INIT_FAILED)
            return

        engine.connect('started-utterance', lambda name: self._speaking.set())
        engine.connect('finished-utterance', lambda name, completed: self._speaking.clear())

        if voice is None:
            logger.error(f"TTS language {self.language} is not supported")
            self._report(on_status, SpeechStatus.LANGUAGE_UNSUPPORTED)
        else:
            self._report(on_status, SpeechStatus.READY)

        engine.startLoop(False)
        try:
            while not self._shutdown_event.is_set():
                try:
                    action, text, utterance_id = self._commands.get(timeout=self.poll_interval)
                except queue.Empty:
                    action = None
                if action == 'stop':
                    engine.stop()
                    self._speaking.clear()
                elif action == 'speak':
                    engine.say(text, utterance_id)
                engine.iterate()
        finally:
            engine.endLoop()

    def _drain(self) -> None:
        while True:
            try:
                self._commands.get_nowait()
            except queue.Empty:
                return

    def speak(self, text: str, interrupt: bool = True, utterance_id: str = UTTERANCE_ID) -> None:
        if self._failed or self._thread is None or self._shutdown_event.is_set():
            raise SpeechError("Speech engine is not running")
        if interrupt:
            self._drain()
            self._commands.put(('stop', None, None))
        self._commands.put(('speak', text, utterance_id))

    def is_speaking(self) -> bool:
        return self._speaking.is_set()

    def stop(self) -> None:
        self._drain()
        self._commands.put(('stop', None, None))

    def shutdown(self) -> None:
        self._shutdown_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)


class SpeechNotifier:
    """Speaks outcome messages, always pre-empting whatever is being said.

    Engine failures are logged and never propagate to the caller.
    """

    def __init__(self, engine: SpeechEngine, utterance_id: str = UTTERANCE_ID):
        self.engine = engine
        self.utterance_id = utterance_id

    def notify(self, message: str) -> bool:
        """Stop any current utterance and speak ``message``. Returns success."""
        try:
            if self.engine.is_speaking():
                self.engine.stop()
            self.engine.speak(message, interrupt=True, utterance_id=self.utterance_id)
            return True
        except Exception as e:
            logger.error(f"Speech failed for message {message[:40]!r}: {e}", exc_info=True)
            return False

    def on_engine_status(self, status: SpeechStatus) -> None:
        """Announce engine start-up results."""
        if status is SpeechStatus.READY:
            self.notify(READY_MESSAGE)
        elif status is SpeechStatus.LANGUAGE_UNSUPPORTED:
            logger.error("TTS language is not supported")
            self.notify(LANGUAGE_ERROR_MESSAGE)
        else:
            logger.error("TTS initialization failed")
