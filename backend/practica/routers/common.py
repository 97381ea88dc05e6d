from __future__ import annotations
import logging
import time
import uuid
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel

from ..errors import TransitionError
from ..schemas import Question


T = TypeVar("T")

logger = logging.getLogger(__name__)


class SessionRequest(BaseModel):
    session_id: str


class AnswerRequest(BaseModel):
    session_id: str
    answer: str


def get_session(sessions: SessionRegistry[T], session_id: str) -> T:
    controller = sessions.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return controller


def load_failed(session_id: str, message: str, retryable: bool) -> HTTPException:
    # 503: configuration missing, nothing to retry; 502: generator failed, retry allowed
    return HTTPException(
        status_code=502 if retryable else 503,
        detail={"session_id": session_id, "message": message, "retryable": retryable},
    )


def conflict(e: TransitionError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


def bad_answer(e: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


def question_payload(question: Optional[Question], *, reveal: bool = False) -> Optional[Dict[str, Any]]:
    if question is None:
        return None
    payload: Dict[str, Any] = {
        "sentence": question.sentence,
        "parts": question.blank_parts(),
        "options": list(question.options),
    }
    if reveal:
        payload["correctAnswer"] = question.correct_answer
        payload["explanation"] = question.explanation
    return payload


class SessionRegistry(Generic[T]):
    """In-process session table; entries idle for longer than ``ttl_seconds`` are swept."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[T, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def add(self, controller: T) -> str:
        session_id = uuid.uuid4().hex
        self._entries[session_id] = (controller, self._clock())
        return session_id

    def get(self, session_id: str) -> Optional[T]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        self._entries[session_id] = (entry[0], self._clock())
        return entry[0]

    def pop(self, session_id: str) -> Optional[T]:
        entry = self._entries.pop(session_id, None)
        return entry[0] if entry is not None else None

    def values(self) -> List[T]:
        return [controller for controller, _ in self._entries.values()]

    def clear(self) -> None:
        for controller in self.values():
            _close(controller)
        self._entries.clear()

    def sweep(self) -> int:
        cutoff = self._clock() - self.ttl_seconds
        stale = [sid for sid, (_, seen) in self._entries.items() if seen < cutoff]
        for sid in stale:
            _close(self._entries.pop(sid)[0])
        if stale:
            logger.info("Evicted %d idle sessions", len(stale))
        return len(stale)


def _close(controller: Any) -> None:
    close = getattr(controller, "close", None)
    if close is not None:
        close()
