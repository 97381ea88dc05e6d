from __future__ import annotations
import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine
from .settings import settings
from .routers import exam
from .routers import history
from .routers import placement
from .routers import practice
from .routers import preferences

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("practica")

app = FastAPI(title="Practica Valencià API")
app.include_router(practice.router)
app.include_router(exam.router)
app.include_router(placement.router)
app.include_router(history.router)
app.include_router(preferences.router)

@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}

_REGISTRIES = (practice._sessions, exam._sessions, placement._sessions)
SWEEP_INTERVAL_SECONDS = 60

def sweep_idle_sessions() -> int:
	return sum(registry.sweep() for registry in _REGISTRIES)

async def _session_sweeper():
	while True:
		await asyncio.sleep(SWEEP_INTERVAL_SECONDS)
		sweep_idle_sessions()

_sweeper_task: asyncio.Task | None = None

@app.on_event("startup")
async def startup_event():
	global _sweeper_task
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	if not settings.gemini_api_key:
		logger.warning("GEMINI_API_KEY is not set; content generation will fail until it is configured")
	_sweeper_task = asyncio.create_task(_session_sweeper())

@app.on_event("shutdown")
async def shutdown_event():
	if _sweeper_task is not None:
		_sweeper_task.cancel()
	# no countdown may outlive the app
	for registry in _REGISTRIES:
		registry.clear()
