from __future__ import annotations
from datetime import date
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Response

from ..history import aggregate, daily_stats, export_csv
from ..schemas import Level
from ..services import Services, get_services


router = APIRouter(prefix="/history", tags=["history"])


def _filtered(
    services: Services,
    level: Union[Level, Literal["all"]],
    correctness: Literal["all", "correct", "incorrect"],
    start_date: Optional[date],
    end_date: Optional[date],
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    return services.history.filter(level, correctness, start_date, end_date)


@router.get("")
async def list_history(
    level: Union[Level, Literal["all"]] = "all",
    correctness: Literal["all", "correct", "incorrect"] = "all",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    services: Services = Depends(get_services),
):
    items = _filtered(services, level, correctness, start_date, end_date)
    return {
        "total": len(services.history),
        "items": [item.model_dump(mode="json", by_alias=True) for item in items],
        "stats": aggregate(items).model_dump(),
        "daily": [row.model_dump(mode="json") for row in daily_stats(items)],
    }


@router.delete("")
async def clear_history(services: Services = Depends(get_services)):
    services.history.clear()
    return {"ok": True}


@router.get("/export.csv")
async def export_history(
    level: Union[Level, Literal["all"]] = "all",
    correctness: Literal["all", "correct", "incorrect"] = "all",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    services: Services = Depends(get_services),
):
    content = export_csv(_filtered(services, level, correctness, start_date, end_date))
    if content is None:
        # nothing to export
        return Response(status_code=204)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="historial_practica.csv"'},
    )
