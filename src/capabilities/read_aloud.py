"""Read-aloud adapter: at most one live utterance, with pause/resume."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from src.pipeline.state import ActiveRecipe, Notice, NoticeSink, log_notice
from src.prompts.prompts import recipe_speech_text
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_sync


class SpeechState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"


class UtteranceHandle(ABC):
    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def cancel(self) -> None:
        ...


class SpeechSynthesizer(ABC):
    """Platform speech synthesis engine."""

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def speak(
        self,
        text: str,
        on_end: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> UtteranceHandle:
        ...

    @abstractmethod
    def cancel_all(self) -> None:
        """Cancel every queued or playing utterance of this engine."""


class ReadAloud:
    """Reads recipes aloud through a SpeechSynthesizer.

    Callbacks from an utterance that has been superseded (cancelled, or
    replaced by a newer `speak`) are ignored.
    """

    def __init__(self, synthesizer: Optional[SpeechSynthesizer], notify: Optional[NoticeSink] = None) -> None:
        self._synthesizer = synthesizer
        self._notify = notify or log_notice
        self.is_supported = synthesizer is not None and bool(
            safe_execute_sync(synthesizer.is_available, "Probe speech synthesis", default_return=False)
        )
        self.state = SpeechState.IDLE
        self._handle: Optional[UtteranceHandle] = None
        self._live: Optional[int] = None
        self._counter = 0
        self._recipe: Optional[ActiveRecipe] = None

    @property
    def is_speaking(self) -> bool:
        return self.state != SpeechState.IDLE

    def speak(self, text: str) -> bool:
        """Cancel whatever is playing and start reading `text`."""
        if not self.is_supported:
            self._notify(
                Notice("Speech Not Supported", "Text-to-speech is not available on this platform.", level="error")
            )
            return False

        self.cancel()
        safe_execute_sync(self._synthesizer.cancel_all, "Cancel pending speech")

        self._counter += 1
        utterance = self._counter
        self._live = utterance
        self.state = SpeechState.SPEAKING
        try:
            handle = self._synthesizer.speak(
                text,
                on_end=lambda: self._finished(utterance),
                on_error=lambda error: self._failed(utterance, error),
            )
        except Exception as e:
            self._failed(utterance, str(e))
            return False

        # The engine may already have finished synchronously
        if self._live == utterance:
            self._handle = handle
        return True

    def speak_recipe(self, recipe: ActiveRecipe) -> bool:
        self._recipe = recipe
        return self.speak(recipe_speech_text(recipe))

    def toggle(self, recipe: ActiveRecipe) -> bool:
        """Read-aloud button: stop when reading, start otherwise."""
        if self.is_speaking:
            self.cancel()
            return False
        return self.speak_recipe(recipe)

    def pause(self) -> None:
        if self.state == SpeechState.SPEAKING and self._handle is not None:
            self._handle.pause()
            self.state = SpeechState.PAUSED

    def resume(self) -> None:
        if self.state == SpeechState.PAUSED and self._handle is not None:
            self._handle.resume()
            self.state = SpeechState.SPEAKING

    def toggle_pause(self) -> None:
        if self.state == SpeechState.PAUSED:
            self.resume()
        else:
            self.pause()

    def cancel(self) -> None:
        handle = self._handle
        was_live = self._live is not None
        self._reset()
        if handle is not None:
            safe_execute_sync(handle.cancel, "Cancel utterance")
        elif was_live:
            safe_execute_sync(self._synthesizer.cancel_all, "Cancel pending speech")

    def set_recipe(self, recipe: Optional[ActiveRecipe]) -> None:
        """Track the displayed recipe. Any other recipe object, even one with the
        same name, stops the current reading.
        """
        if recipe is not self._recipe:
            self.cancel()
            self._recipe = recipe

    def _reset(self) -> None:
        self._live = None
        self._handle = None
        self.state = SpeechState.IDLE

    def _finished(self, utterance: int) -> None:
        if self._live == utterance:
            self._reset()

    def _failed(self, utterance: int, error: str) -> None:
        if self._live != utterance:
            return
        self._reset()
        logger.warning(f"Speech synthesis error: {error}")
        self._notify(Notice("Speech Error", "Could not read the recipe aloud.", level="error"))
