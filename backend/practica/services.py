from __future__ import annotations
from typing import Optional

from .content import ContentSource, GeminiContentSource
from .db import SessionLocal
from .history import PracticeHistory
from .preferences import Preferences
from .store import SafeStore, SqlStateStore, StateStore
from .timer import AsyncioScheduler, Scheduler


class Services:
	"""Everything a controller needs, shared by all requests of the process."""

	def __init__(self, store: StateStore, content: ContentSource, scheduler: Scheduler) -> None:
		self.store = store
		self.content = content
		self.scheduler = scheduler
		self.preferences = Preferences(store)
		self.history = PracticeHistory(store)


_services: Optional[Services] = None


def get_services() -> Services:
	global _services
	if _services is None:
		_services = Services(
			store=SafeStore(SqlStateStore(SessionLocal)),
			content=GeminiContentSource(),
			scheduler=AsyncioScheduler(),
		)
	return _services
