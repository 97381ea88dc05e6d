from __future__ import annotations
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..schemas import ExamSettings
from ..services import Services, get_services


router = APIRouter(prefix="/preferences", tags=["preferences"])


class ThemeRequest(BaseModel):
    theme: Literal["light", "dark"]


def _payload(services: Services):
    prefs = services.preferences
    level = prefs.recommended_level()
    return {
        "theme": prefs.theme(),
        "examSettings": prefs.exam_settings().model_dump(by_alias=True),
        "recommendedLevel": level.value if level else None,
        "onboardingComplete": prefs.onboarding_complete(),
    }


@router.get("")
async def get_preferences(services: Services = Depends(get_services)):
    return _payload(services)


@router.put("/theme")
async def set_theme(req: ThemeRequest, services: Services = Depends(get_services)):
    services.preferences.set_theme(req.theme)
    return _payload(services)


@router.post("/theme/toggle")
async def toggle_theme(services: Services = Depends(get_services)):
    services.preferences.toggle_theme()
    return _payload(services)


@router.put("/exam-settings")
async def set_exam_settings(req: ExamSettings, services: Services = Depends(get_services)):
    services.preferences.save_exam_settings(req)
    return _payload(services)


@router.post("/onboarding/complete")
async def complete_onboarding(services: Services = Depends(get_services)):
    services.preferences.mark_onboarding_complete()
    return _payload(services)
