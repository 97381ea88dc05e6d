from __future__ import annotations
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..errors import TransitionError
from ..exam import ExamController, Finished, InProgress, ReviewingFailed, Start
from ..schemas import ExamSettings, Level
from ..services import Services, get_services
from ..settings import settings
from .common import AnswerRequest, SessionRegistry, SessionRequest, bad_answer, conflict, get_session, load_failed, question_payload


router = APIRouter(prefix="/exam", tags=["exam"])

logger = logging.getLogger(__name__)


class CreateRequest(BaseModel):
    level: Level


class SettingsRequest(BaseModel):
    session_id: str
    num_questions: int = Field(alias="numQuestions")
    time_per_question: int = Field(alias="timePerQuestion")


_sessions: SessionRegistry[ExamController] = SessionRegistry(settings.session_ttl_seconds)


def _payload(session_id: str, controller: ExamController) -> Dict[str, Any]:
    state = controller.state
    out: Dict[str, Any] = {
        "session_id": session_id,
        "state": state.name,
        "level": controller.level.value,
        "settings": controller.settings.model_dump(by_alias=True),
    }
    if isinstance(state, Start):
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
    elif isinstance(state, Finished):
        failed = state.failed
        out.update({
            "score": state.score,
            "total": len(state.batch),
            "failed_count": len(failed),
            "reviewed": state.reviewed,
            "results": [
                {
                    "question": question_payload(q, reveal=True),
                    "selected": state.batch.answers.get(i),
                    "is_correct": state.batch.is_correct(i),
                }
                for i, q in enumerate(state.batch.questions)
            ],
        })
    elif isinstance(state, ReviewingFailed):
        out.update({
            "score": state.score,
            "index": state.index,
            "failed_count": len(state.failed),
            "is_last": state.is_last,
            "question": question_payload(state.question, reveal=state.feedback is not None),
            "feedback": (
                {"selected": state.feedback.answer, "is_correct": state.feedback.is_correct}
                if state.feedback is not None
                else None
            ),
        })
    return out


@router.post("/session")
async def create_session(req: CreateRequest, services: Services = Depends(get_services)):
    controller = ExamController(req.level, services.content, services.preferences, services.scheduler)
    session_id = _sessions.add(controller)
    return _payload(session_id, controller)


@router.put("/settings")
async def update_settings(req: SettingsRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        new_settings = ExamSettings(numQuestions=req.num_questions, timePerQuestion=req.time_per_question)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    try:
        controller.update_settings(new_settings)
    except TransitionError as e:
        raise conflict(e)
    return _payload(req.session_id, controller)


@router.post("/begin")
async def begin(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        await controller.begin()
    except TransitionError as e:
        raise conflict(e)
    state = controller.state
    if isinstance(state, Start) and state.error:
        raise load_failed(req.session_id, state.error, state.retryable)
    return _payload(req.session_id, controller)


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


@router.post("/review/start")
async def review_start(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        controller.start_review()
    except TransitionError as e:
        raise conflict(e)
    return _payload(req.session_id, controller)


@router.post("/review/answer")
async def review_answer(req: AnswerRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        controller.review_answer(req.answer)
    except TransitionError as e:
        raise conflict(e)
    except ValueError as e:
        raise bad_answer(e)
    return _payload(req.session_id, controller)


@router.post("/review/next")
async def review_next(req: SessionRequest):
    controller = get_session(_sessions, req.session_id)
    try:
        advanced = controller.review_next()
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
    logger.info("Exam session %s closed", session_id)
    return {"ok": True}
