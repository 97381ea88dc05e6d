from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from .content import ContentSource
from .errors import PracticaError
from .exam import Batch, BatchRunner, InProgress, Loading
from .preferences import Preferences
from .schemas import Level
from .timer import Scheduler


logger = logging.getLogger(__name__)


def recommend_level(score: int) -> Level:
    if score <= 2:
        return Level.B1
    if score <= 5:
        return Level.B2
    if score <= 8:
        return Level.C1
    return Level.C2


@dataclass(frozen=True)
class LoadFailed:
    name: ClassVar[str] = "load_failed"
    error: str
    retryable: bool = True


@dataclass(frozen=True)
class PlacementFinished:
    name: ClassVar[str] = "finished"
    batch: Batch
    score: int
    level: Level


PlacementState = Union[Loading, LoadFailed, InProgress, PlacementFinished]


class PlacementTestController(BatchRunner):
    """Ten graded questions; the score decides the recommended level."""

    def __init__(self, content: ContentSource, preferences: Preferences, scheduler: Scheduler) -> None:
        self._content = content
        self._preferences = preferences
        super().__init__(scheduler, preferences.exam_settings().time_per_question)
        self.state: PlacementState = Loading()
        self._loading = False

    async def load(self) -> None:
        if self._loading:
            # one request at a time
            return
        self._require("load", Loading, LoadFailed)
        generation = self._next_load()
        self.state = Loading()
        self._loading = True
        try:
            questions = await self._content.fetch_placement_test()
        except PracticaError as e:
            if self._is_current_load(generation):
                logger.warning("Placement test could not be loaded: %s", e.message)
                self.state = LoadFailed(e.message, e.retryable)
            return
        finally:
            self._loading = False
        if not self._is_current_load(generation):
            return
        self._install(questions)

    def _finish(self, batch: Batch) -> None:
        score = batch.score()
        level = recommend_level(score)
        self._preferences.set_recommended_level(level)
        logger.info("Placement test finished: %d/%d -> %s", score, len(batch), level.value)
        self.state = PlacementFinished(batch, score, level)

    @property
    def recommended_level(self) -> Optional[Level]:
        return self.state.level if isinstance(self.state, PlacementFinished) else None
