"""Dictation adapter: single-shot speech-to-text with toggle start/stop."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from src.pipeline.state import Notice, NoticeSink, log_notice
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_sync


class DictationErrorKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    NO_SPEECH = "no-speech"
    UNSUPPORTED = "unsupported"
    OTHER = "other"


ERROR_NOTICES = {
    DictationErrorKind.PERMISSION_DENIED: Notice(
        "Microphone Access Denied",
        "Please allow microphone access in your settings to use voice input.",
        level="error",
    ),
    DictationErrorKind.NO_SPEECH: Notice(
        "No Speech Detected",
        "We didn't catch that. Please try speaking again.",
        level="error",
    ),
    DictationErrorKind.UNSUPPORTED: Notice(
        "Voice Input Not Supported",
        "Speech recognition is not available on this platform.",
        level="error",
    ),
    DictationErrorKind.OTHER: Notice(
        "Voice Input Error",
        "Something went wrong with voice input. Please try again.",
        level="error",
    ),
}


def classify_engine_error(code: str) -> DictationErrorKind:
    """Map an engine error code onto one of the user-facing error kinds."""
    if code in ("not-allowed", "service-not-allowed"):
        return DictationErrorKind.PERMISSION_DENIED
    if code == "no-speech":
        return DictationErrorKind.NO_SPEECH
    return DictationErrorKind.OTHER


class DictationEngine(ABC):
    """Platform speech recognizer.

    `start` must report through exactly the callbacks it was given: zero or
    one `on_result`, optionally `on_error`, then `on_end`.
    """

    def is_supported(self) -> bool:
        return True

    @abstractmethod
    def start(
        self,
        on_result: Callable[[str], None],
        on_error: Callable[[str], None],
        on_end: Callable[[], None],
    ) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


class Dictation:
    """Wraps a DictationEngine into a single-shot recording session."""

    def __init__(
        self,
        engine: Optional[DictationEngine],
        on_result: Callable[[str], None],
        on_error: Optional[Callable[[DictationErrorKind], None]] = None,
        notify: Optional[NoticeSink] = None,
    ) -> None:
        self._engine = engine
        self._on_result = on_result
        self._on_error = on_error
        self._notify = notify or log_notice
        self.is_supported = engine is not None and bool(
            safe_execute_sync(engine.is_supported, "Probe speech recognition", default_return=False)
        )
        self.is_recording = False
        self._session = 0

    def start(self) -> bool:
        """Start recording, or stop the current recording when already recording.

        Returns:
            True when a new recording session started.
        """
        if not self.is_supported:
            self._report(DictationErrorKind.UNSUPPORTED)
            return False
        if self.is_recording:
            self.stop()
            return False

        self._session += 1
        session = self._session
        self.is_recording = True
        try:
            self._engine.start(
                on_result=lambda text: self._handle_result(session, text),
                on_error=lambda code: self._handle_error(session, code),
                on_end=lambda: self._handle_end(session),
            )
        except Exception as e:
            logger.warning(f"Could not start speech recognition: {e}")
            self._end_session()
            self._report(DictationErrorKind.OTHER)
            return False
        return True

    def stop(self) -> None:
        """Stop listening. A result already being recognized is still delivered."""
        if self.is_recording:
            safe_execute_sync(self._engine.stop, "Stop speech recognition")
            self.is_recording = False

    def cancel(self) -> None:
        """Stop listening and discard anything the engine still reports."""
        was_recording = self.is_recording
        self._end_session()
        if was_recording:
            safe_execute_sync(self._engine.stop, "Stop speech recognition")

    def _end_session(self) -> None:
        self.is_recording = False
        self._session += 1

    def _handle_result(self, session: int, text: str) -> None:
        if session != self._session:
            return
        self._end_session()
        text = (text or "").strip()
        if text:
            self._on_result(text)

    def _handle_error(self, session: int, code: str) -> None:
        if session != self._session:
            return
        self._end_session()
        logger.warning(f"Speech recognition error: {code}")
        self._report(classify_engine_error(code))

    def _handle_end(self, session: int) -> None:
        if session == self._session:
            self.is_recording = False

    def _report(self, kind: DictationErrorKind) -> None:
        self._notify(ERROR_NOTICES[kind])
        if self._on_error is not None:
            self._on_error(kind)
