from __future__ import annotations
import json
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .models import StateEntry


logger = logging.getLogger(__name__)


# Persisted keys
THEME_KEY = "theme"
EXAM_SETTINGS_KEY = "examSettings"
HISTORY_KEY = "practiceHistory"
RECOMMENDED_LEVEL_KEY = "nivelRecomanat"
ONBOARDING_KEY = "onboardingComplete"
MILESTONES_KEY = "sharePopupMilestones"


class StateStore:
	"""Keyed string storage. Implementations raise PersistenceError on I/O failure."""

	def get(self, key: str) -> Optional[str]:
		raise NotImplementedError

	def set(self, key: str, value: str) -> None:
		raise NotImplementedError

	def remove(self, key: str) -> None:
		raise NotImplementedError

	def get_json(self, key: str, default: Any = None) -> Any:
		raw = self.get(key)
		if raw is None:
			return default
		try:
			return json.loads(raw)
		except ValueError:
			logger.warning("Stored value for %r is not valid JSON; ignoring it", key)
			return default

	def set_json(self, key: str, value: Any) -> None:
		self.set(key, json.dumps(value, ensure_ascii=False))


class MemoryStateStore(StateStore):
	def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
		self._data: Dict[str, str] = dict(initial or {})

	def get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		self._data[key] = value

	def remove(self, key: str) -> None:
		self._data.pop(key, None)


class SqlStateStore(StateStore):
	def __init__(self, session_factory: Callable[[], Session]) -> None:
		self._session_factory = session_factory

	def get(self, key: str) -> Optional[str]:
		try:
			with self._session_factory() as db:
				row = db.get(StateEntry, key)
				return row.value if row is not None else None
		except SQLAlchemyError as e:
			raise PersistenceError(f"could not read {key}: {e}") from e

	def set(self, key: str, value: str) -> None:
		try:
			with self._session_factory() as db:
				row = db.get(StateEntry, key)
				if row is None:
					row = StateEntry(key=key, value=value)
					db.add(row)
				else:
					row.value = value
				db.commit()
		except SQLAlchemyError as e:
			raise PersistenceError(f"could not write {key}: {e}") from e

	def remove(self, key: str) -> None:
		try:
			with self._session_factory() as db:
				row = db.get(StateEntry, key)
				if row is not None:
					db.delete(row)
					db.commit()
		except SQLAlchemyError as e:
			raise PersistenceError(f"could not remove {key}: {e}") from e


class SafeStore(StateStore):
	"""Never raises. After the first backend failure it keeps working in memory only."""

	def __init__(self, backend: StateStore) -> None:
		self._backend = backend
		self._memory = MemoryStateStore()
		self.degraded = False

	def _fail(self, err: PersistenceError) -> None:
		if not self.degraded:
			logger.warning("Persistence failed, continuing in memory only: %s", err.message)
		self.degraded = True

	def get(self, key: str) -> Optional[str]:
		if not self.degraded:
			try:
				value = self._backend.get(key)
			except PersistenceError as e:
				self._fail(e)
			else:
				# keep a copy so a later failure does not lose what we already saw
				if value is None:
					self._memory.remove(key)
				else:
					self._memory.set(key, value)
				return value
		return self._memory.get(key)

	def set(self, key: str, value: str) -> None:
		self._memory.set(key, value)
		if self.degraded:
			return
		try:
			self._backend.set(key, value)
		except PersistenceError as e:
			self._fail(e)

	def remove(self, key: str) -> None:
		self._memory.remove(key)
		if self.degraded:
			return
		try:
			self._backend.remove(key)
		except PersistenceError as e:
			self._fail(e)
