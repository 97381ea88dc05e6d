from __future__ import annotations
import logging
from typing import Optional

from pydantic import ValidationError

from .schemas import DEFAULT_EXAM_SETTINGS, ExamSettings, Level
from .store import (
	EXAM_SETTINGS_KEY,
	ONBOARDING_KEY,
	RECOMMENDED_LEVEL_KEY,
	THEME_KEY,
	StateStore,
)


logger = logging.getLogger(__name__)

THEMES = ("light", "dark")


class Preferences:
	def __init__(self, store: StateStore) -> None:
		self._store = store

	# Theme

	def theme(self) -> str:
		saved = self._store.get(THEME_KEY)
		return saved if saved in THEMES else "light"

	def set_theme(self, theme: str) -> str:
		if theme not in THEMES:
			raise ValueError(f"theme must be one of {THEMES}")
		self._store.set(THEME_KEY, theme)
		return theme

	def toggle_theme(self) -> str:
		return self.set_theme("dark" if self.theme() == "light" else "light")

	# Exam settings

	def exam_settings(self) -> ExamSettings:
		data = self._store.get_json(EXAM_SETTINGS_KEY)
		if data is None:
			return DEFAULT_EXAM_SETTINGS
		try:
			return ExamSettings.model_validate(data)
		except ValidationError:
			logger.warning("Stored exam settings are invalid, using defaults: %r", data)
			return DEFAULT_EXAM_SETTINGS

	def save_exam_settings(self, exam_settings: ExamSettings) -> ExamSettings:
		self._store.set_json(EXAM_SETTINGS_KEY, exam_settings.model_dump(by_alias=True))
		return exam_settings

	# Placement test outcome

	def recommended_level(self) -> Optional[Level]:
		saved = self._store.get(RECOMMENDED_LEVEL_KEY)
		try:
			return Level(saved) if saved else None
		except ValueError:
			return None

	def set_recommended_level(self, level: Level) -> None:
		self._store.set(RECOMMENDED_LEVEL_KEY, level.value)

	# Onboarding

	def onboarding_complete(self) -> bool:
		return self._store.get(ONBOARDING_KEY) == "true"

	def mark_onboarding_complete(self) -> None:
		self._store.set(ONBOARDING_KEY, "true")
