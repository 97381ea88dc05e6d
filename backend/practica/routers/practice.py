from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..errors import TransitionError
from ..practice import Answered, PracticeController, PracticeFailed
from ..schemas import Level, Skill
from ..services import Services, get_services
from ..settings import settings
from .common import AnswerRequest, SessionRegistry, SessionRequest, bad_answer, conflict, get_session, load_failed, question_payload


router = APIRouter(prefix="/practice", tags=["practice"])


class StartRequest(BaseModel):
    level: Level
    skill: Skill


_sessions: SessionRegistry[PracticeController] = SessionRegistry(settings.session_ttl_seconds)


def _payload(session_id: str, controller: PracticeController) -> Dict[str, Any]:
    state = controller.state
    out: Dict[str, Any] = {
        "session_id": session_id,
        "state": state.name,
        "level": controller.level.value,
        "skill": controller.skill.value,
        "question": question_payload(controller.question, reveal=isinstance(state, Answered)),
        "feedback": None,
    }
    if isinstance(state, Answered):
        out["feedback"] = {
            "selected": state.selected,
            "is_correct": state.is_correct,
            "share_prompt": state.milestone,
        }
    return out


async def _load(session_id: str, controller: PracticeController) -> Dict[str, Any]:
    await controller.load()
    if isinstance(controller.state, PracticeFailed):
        raise load_failed(session_id, controller.state.error, controller.state.retryable)
    return _payload(session_id, controller)


@router.post("/start")
async def start(req: StartRequest, services: Services = Depends(get_services)):
    controller = PracticeController(
        req.level,
        req.skill,
        services.content,
        services.history,
        recent_limit=settings.history_recent_limit,
    )
    session_id = _sessions.add(controller)
    return await _load(session_id, controller)


@router.post("/answer")
async def answer(req: AnswerRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        controller.answer(req.answer)
    except TransitionError as e:
        raise conflict(e)
    except ValueError as e:
        raise bad_answer(e)
    return _payload(req.session_id, controller)


@router.post("/next")
async def next_exercise(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    # also the retry path after a failed load
    try:
        await controller.next()
    except TransitionError as e:
        raise conflict(e)
    if isinstance(controller.state, PracticeFailed):
        raise load_failed(req.session_id, controller.state.error, controller.state.retryable)
    return _payload(req.session_id, controller)


@router.get("/state")
async def get_state(session_id: str):
    controller = get_session(_sessions, session_id)
    return _payload(session_id, controller)


@router.delete("/session")
async def end_session(session_id: str):
    if _sessions.pop(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}
