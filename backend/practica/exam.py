"""Timed exam simulation.

The controller is a small state machine::

    start -> loading -> in_progress -> finished <-> reviewing_failed
      ^         |
      +---------+  (load failed, error kept on Start)

Its state is a single value, one of the frozen dataclasses below. Only the
``in_progress`` state has a running countdown; every way out of it cancels
the timer.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from .content import ContentSource
from .errors import PracticaError, TransitionError
from .preferences import Preferences
from .schemas import ExamSettings, Level, Question
from .timer import Countdown, Scheduler


logger = logging.getLogger(__name__)


@dataclass
class Batch:
    questions: Tuple[Question, ...]
    # position -> selected option text
    answers: Dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.questions)

    def record(self, position: int, answer: str) -> None:
        self.answers[position] = answer

    def is_correct(self, position: int) -> bool:
        return self.answers.get(position) == self.questions[position].correct_answer

    def score(self) -> int:
        return sum(1 for i in range(len(self.questions)) if self.is_correct(i))

    def failed_questions(self) -> List[Question]:
        # unanswered positions count as failed
        return [q for i, q in enumerate(self.questions) if not self.is_correct(i)]


@dataclass(frozen=True)
class Start:
    name: ClassVar[str] = "start"
    error: Optional[str] = None
    retryable: bool = True


@dataclass(frozen=True)
class Loading:
    name: ClassVar[str] = "loading"


@dataclass(frozen=True)
class InProgress:
    name: ClassVar[str] = "in_progress"
    batch: Batch
    position: int

    @property
    def question(self) -> Question:
        return self.batch.questions[self.position]

    @property
    def is_last(self) -> bool:
        return self.position == len(self.batch) - 1


@dataclass(frozen=True)
class Finished:
    name: ClassVar[str] = "finished"
    batch: Batch
    score: int
    reviewed: bool = False

    @property
    def failed(self) -> List[Question]:
        return self.batch.failed_questions()


@dataclass(frozen=True)
class ReviewFeedback:
    answer: str
    is_correct: bool


@dataclass(frozen=True)
class ReviewingFailed:
    name: ClassVar[str] = "reviewing_failed"
    batch: Batch
    score: int
    failed: Tuple[Question, ...]
    index: int = 0
    feedback: Optional[ReviewFeedback] = None

    @property
    def question(self) -> Question:
        return self.failed[self.index]

    @property
    def is_last(self) -> bool:
        return self.index == len(self.failed) - 1


ExamState = Union[Start, Loading, InProgress, Finished, ReviewingFailed]


class BatchRunner:
    """Question-by-question progression with a per-question countdown."""

    def __init__(self, scheduler: Scheduler, time_per_question: int) -> None:
        self.time_per_question = time_per_question
        self._countdown = Countdown(scheduler, self._on_timeout)
        self._load_generation = 0
        self._closed = False
        self.state: object = Loading()

    @property
    def time_left(self) -> int:
        return self._countdown.remaining if isinstance(self.state, InProgress) else 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _require(self, action: str, *kinds: type) -> None:
        if self._closed:
            raise TransitionError(action, "closed")
        if not isinstance(self.state, kinds):
            raise TransitionError(action, getattr(self.state, "name", "?"))

    def _next_load(self) -> int:
        self._load_generation += 1
        return self._load_generation

    def _is_current_load(self, generation: int) -> bool:
        return not self._closed and generation == self._load_generation

    def _install(self, questions: Sequence[Question]) -> None:
        batch = Batch(tuple(questions))
        self.state = InProgress(batch, 0)
        self._countdown.start(self.time_per_question)

    def select(self, option: str) -> None:
        self._require("select", InProgress)
        state = self.state
        if option not in state.question.options:
            raise ValueError(f"{option!r} is not one of the options")
        state.batch.record(state.position, option)

    def next(self) -> bool:
        """Advance past the current question. Returns False (and does nothing) if it has no answer yet."""
        self._require("next", InProgress)
        if self.state.position not in self.state.batch.answers:
            return False
        self._advance()
        return True

    def _on_timeout(self) -> None:
        if self._closed or not isinstance(self.state, InProgress):
            return
        logger.debug("Time is up on question %d", self.state.position)
        self._advance()

    def _advance(self) -> None:
        state = self.state
        if state.position + 1 < len(state.batch):
            self.state = InProgress(state.batch, state.position + 1)
            self._countdown.start(self.time_per_question)
        else:
            self._countdown.cancel()
            self._finish(state.batch)

    def _finish(self, batch: Batch) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self._closed = True
        self._countdown.cancel()


class ExamController(BatchRunner):
    def __init__(
        self,
        level: Level,
        content: ContentSource,
        preferences: Preferences,
        scheduler: Scheduler,
    ) -> None:
        self.level = level
        self._content = content
        self._preferences = preferences
        self.settings: ExamSettings = preferences.exam_settings()
        super().__init__(scheduler, self.settings.time_per_question)
        self.state: ExamState = Start()

    def update_settings(self, new_settings: ExamSettings) -> ExamSettings:
        self._require("update_settings", Start)
        self.settings = self._preferences.save_exam_settings(new_settings)
        self.time_per_question = self.settings.time_per_question
        return self.settings

    async def begin(self) -> None:
        self._require("begin", Start)
        previous = self.state
        generation = self._next_load()
        self.state = Loading()
        try:
            questions = await self._content.fetch_exam(self.level, self.settings.num_questions)
        except PracticaError as e:
            if self._is_current_load(generation):
                logger.warning("Exam could not be loaded: %s", e.message)
                self.state = replace(previous, error=e.message, retryable=e.retryable)
            return
        if not self._is_current_load(generation):
            logger.info("Discarding exam that arrived after the session moved on")
            return
        logger.info("Exam loaded: %d questions at %s", len(questions), self.level.value)
        self._install(questions)

    def _finish(self, batch: Batch) -> None:
        self.state = Finished(batch, batch.score())

    def start_review(self) -> None:
        self._require("start_review", Finished)
        # the failed set is captured now and stays fixed for the whole review
        failed = tuple(self.state.failed)
        if not failed:
            raise TransitionError("start_review", "finished without failed questions")
        self.state = ReviewingFailed(self.state.batch, self.state.score, failed)

    def review_answer(self, option: str) -> ReviewFeedback:
        self._require("review_answer", ReviewingFailed)
        state = self.state
        if state.feedback is not None:
            # first selection is final
            return state.feedback
        if option not in state.question.options:
            raise ValueError(f"{option!r} is not one of the options")
        feedback = ReviewFeedback(option, option == state.question.correct_answer)
        self.state = replace(state, feedback=feedback)
        return feedback

    def review_next(self) -> bool:
        self._require("review_next", ReviewingFailed)
        state = self.state
        if state.feedback is None:
            return False
        if state.is_last:
            self.state = Finished(state.batch, state.score, reviewed=True)
        else:
            self.state = replace(state, index=state.index + 1, feedback=None)
        return True
