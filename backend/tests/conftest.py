import asyncio
import os
from typing import Callable, List, Optional

# keep the app away from the developer's database file and real credentials
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("GEMINI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from practica.content import ContentSource
from practica.history import PracticeHistory
from practica.preferences import Preferences
from practica.schemas import Question
from practica.services import Services, get_services
from practica.store import MemoryStateStore
from practica.timer import Handle, Scheduler


def make_question(n: int, explanation: Optional[str] = None) -> Question:
    return Question(
        sentence=f"Frase {n} amb [BLANK] buit.",
        options=[f"a{n}", f"b{n}", f"c{n}", f"d{n}"],
        correctAnswer=f"a{n}",
        explanation=explanation or f"Explicació {n}",
    )


class ManualHandle(Handle):
    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Fires callbacks only when the test calls advance()."""

    def __init__(self) -> None:
        self.handles: List[ManualHandle] = []

    def every(self, interval, callback):
        handle = ManualHandle(callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: int = 1) -> None:
        for _ in range(seconds):
            for handle in list(self.active):
                if not handle.cancelled:
                    handle.callback()


class FakeContentSource(ContentSource):
    def __init__(self) -> None:
        self.exam_questions = [make_question(i) for i in range(20)]
        self.placement_questions = [make_question(i) for i in range(10)]
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: list = []
        self._exercise_count = 0

    async def _before(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def fetch_exercise(self, level, skill, recent=()):
        self.calls.append(("exercise", level, skill, list(recent)))
        await self._before()
        self._exercise_count += 1
        return make_question(100 + self._exercise_count)

    async def fetch_exam(self, level, num_questions):
        self.calls.append(("exam", level, num_questions))
        await self._before()
        return self.exam_questions[:num_questions]

    async def fetch_placement_test(self):
        self.calls.append(("placement",))
        await self._before()
        return list(self.placement_questions)


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def preferences(store):
    return Preferences(store)


@pytest.fixture
def history(store):
    return PracticeHistory(store)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def content():
    return FakeContentSource()


@pytest.fixture
def services(store, content, scheduler):
    return Services(store=store, content=content, scheduler=scheduler)


@pytest.fixture
def client(services):
    from practica.main import app
    from practica.routers import exam, placement, practice

    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()
    for registry in (exam._sessions, placement._sessions, practice._sessions):
        registry.clear()
