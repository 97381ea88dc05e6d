from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from .content import ContentSource
from .errors import PracticaError, TransitionError
from .history import PracticeHistory
from .schemas import HistoryItem, Level, Question, Skill


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PracticeLoading:
    name: ClassVar[str] = "loading"


@dataclass(frozen=True)
class PracticeFailed:
    name: ClassVar[str] = "error"
    error: str
    retryable: bool = True


@dataclass(frozen=True)
class Ready:
    name: ClassVar[str] = "ready"
    question: Question


@dataclass(frozen=True)
class Answered:
    name: ClassVar[str] = "answered"
    question: Question
    selected: str
    is_correct: bool
    milestone: bool = False


PracticeState = Union[PracticeLoading, PracticeFailed, Ready, Answered]


class PracticeController:
    """One question at a time: fetch, answer, feedback, fetch the next one."""

    def __init__(
        self,
        level: Level,
        skill: Skill,
        content: ContentSource,
        history: PracticeHistory,
        *,
        recent_limit: int = 20,
    ) -> None:
        self.level = level
        self.skill = skill
        self._content = content
        self._history = history
        self._recent_limit = recent_limit
        self._generation = 0
        self.state: PracticeState = PracticeLoading()

    async def load(self) -> None:
        self._generation += 1
        generation = self._generation
        self.state = PracticeLoading()
        recent = self._history.recent_sentences(self._recent_limit)
        try:
            question = await self._content.fetch_exercise(self.level, self.skill, recent)
        except PracticaError as e:
            if generation == self._generation:
                logger.warning("Exercise could not be loaded: %s", e.message)
                self.state = PracticeFailed(e.message, e.retryable)
            return
        if generation != self._generation:
            return
        self.state = Ready(question)

    def answer(self, option: str) -> Answered:
        if not isinstance(self.state, Ready):
            raise TransitionError("answer", self.state.name)
        question = self.state.question
        if option not in question.options:
            raise ValueError(f"{option!r} is not one of the options")
        is_correct = option == question.correct_answer
        milestone = self._history.append(HistoryItem(
            level=self.level,
            exercise=question,
            selected_answer=option,
            is_correct=is_correct,
            timestamp=self._history.next_timestamp(),
        ))
        self.state = Answered(question, option, is_correct, milestone)
        return self.state

    async def next(self) -> None:
        if isinstance(self.state, (PracticeLoading, Ready)):
            raise TransitionError("next", self.state.name)
        await self.load()

    @property
    def question(self) -> Optional[Question]:
        return getattr(self.state, "question", None)
