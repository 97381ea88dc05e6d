from __future__ import annotations
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from ..errors import TransitionError
from ..exam import InProgress
from ..placement import LoadFailed, PlacementFinished, PlacementTestController
from ..services import Services, get_services
from ..settings import settings
from .common import AnswerRequest, SessionRegistry, SessionRequest, bad_answer, conflict, get_session, load_failed, question_payload


router = APIRouter(prefix="/placement", tags=["placement_test"])


_sessions: SessionRegistry[PlacementTestController] = SessionRegistry(settings.session_ttl_seconds)


def _payload(session_id: str, controller: PlacementTestController) -> Dict[str, Any]:
    state = controller.state
    out: Dict[str, Any] = {"session_id": session_id, "state": state.name}
    if isinstance(state, LoadFailed):
        out["error"] = state.error
        out["retryable"] = state.retryable
    elif isinstance(state, InProgress):
        out.update({
            "position": state.position,
            "total": len(state.batch),
            "time_left": controller.time_left,
            "question": question_payload(state.question),
            "selected": state.batch.answers.get(state.position),
            "can_advance": state.position in state.batch.answers,
            "is_last": state.is_last,
        })
    elif isinstance(state, PlacementFinished):
        out.update({
            "score": state.score,
            "total": len(state.batch),
            "recommended_level": state.level.value,
        })
    return out


async def _load(session_id: str, controller: PlacementTestController) -> Dict[str, Any]:
    try:
        await controller.load()
    except TransitionError as e:
        raise conflict(e)
    if isinstance(controller.state, LoadFailed):
        raise load_failed(session_id, controller.state.error, controller.state.retryable)
    return _payload(session_id, controller)


@router.post("/session")
async def create_session(services: Services = Depends(get_services)):
    controller = PlacementTestController(services.content, services.preferences, services.scheduler)
    session_id = _sessions.add(controller)
    return await _load(session_id, controller)


@router.post("/retry")
async def retry(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    return await _load(req.session_id, controller)


@router.post("/select")
async def select(req: AnswerRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        controller.select(req.answer)
    except TransitionError as e:
        raise conflict(e)
    except ValueError as e:
        raise bad_answer(e)
    return _payload(req.session_id, controller)


@router.post("/next")
async def next_question(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        advanced = controller.next()
    except TransitionError as e:
        raise conflict(e)
    return {**_payload(req.session_id, controller), "advanced": advanced}


@router.get("/state")
async def get_state(session_id: str):
    controller = get_session(_sessions, session_id)
    return _payload(session_id, controller)


@router.delete("/session")
async def end_session(session_id: str):
    controller = _sessions.pop(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found")
    controller.close()
    return {"ok": True}
