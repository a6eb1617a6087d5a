"""Ask-the-chef conversation controller."""

from typing import List, Optional

from src.capabilities.dictation import Dictation, DictationEngine
from src.flows.generation import ask_chef
from src.models.models import ChatTurn
from src.pipeline.state import ActiveRecipe, Notice, NoticeSink, log_notice
from src.utils.logger import logger

FALLBACK_ANSWER = "Sorry, I'm having trouble connecting to the kitchen right now. Please try again in a moment."
EMPTY_QUESTION = Notice("Empty Question", "Please type or dictate a question for the chef.", level="error")


class ChefConversation:
    """Ordered chat turns about one recipe.

    Every accepted question gets exactly one answer turn: the chef's answer,
    or FALLBACK_ANSWER when the call fails. Closing discards the turns; an
    answer arriving after close is dropped.
    """

    def __init__(
        self,
        recipe: ActiveRecipe,
        dictation_engine: Optional[DictationEngine] = None,
        notify: Optional[NoticeSink] = None,
    ) -> None:
        self.recipe = recipe
        self.turns: List[ChatTurn] = []
        self.draft = ""
        self.is_pending = False
        self.is_open = True
        self._session = 0
        self._notify = notify or log_notice
        self.dictation = Dictation(dictation_engine, on_result=self._apply_dictation, notify=notify)

    async def ask(self, question: Optional[str] = None) -> Optional[str]:
        """Send `question` (or the current draft) to the chef.

        Returns:
            The answer turn's content, or None when the question was rejected
            or the conversation was closed while waiting.
        """
        text = (self.draft if question is None else question).strip()
        if self.is_pending or not self.is_open:
            return None
        if not text:
            self._notify(EMPTY_QUESTION)
            return None

        if self.dictation.is_recording:
            self.dictation.stop()
        history = list(self.turns)
        self.turns.append(ChatTurn(role="user", content=text))
        self.draft = ""
        self.is_pending = True
        session = self._session

        try:
            answer = await ask_chef(self.recipe.to_output(), text, history)
        except Exception as e:
            logger.warning(f"Error asking chef: {e}", extra={"recipe": self.recipe.name})
            answer = FALLBACK_ANSWER

        if session != self._session:
            return None
        self.is_pending = False
        self.turns.append(ChatTurn(role="model", content=answer))
        return answer

    def toggle_dictation(self) -> bool:
        return self.dictation.start()

    def _apply_dictation(self, text: str) -> None:
        if self.is_open:
            self.draft = text

    def close(self) -> None:
        self._session += 1
        self.is_open = False
        self.is_pending = False
        self.turns = []
        self.draft = ""
        self.dictation.cancel()
