from __future__ import annotations
from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


BLANK = "[BLANK]"


class Level(str, Enum):
	B1 = "B1"
	B2 = "B2"
	C1 = "C1"
	C2 = "C2"


class Skill(str, Enum):
	COMPRENSIO = "Comprensió"
	ESTRUCTURES = "Estructures Lingüístiques"
	EXPRESSIO_ESCRITA = "Expressió Escrita"
	EXPRESSIO_ORAL = "Expressió Oral"


class Question(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	sentence: str
	options: Tuple[str, str, str, str]
	correct_answer: str = Field(alias="correctAnswer")
	explanation: str = ""

	@field_validator("sentence")
	@classmethod
	def _one_blank_at_most(cls, v: str) -> str:
		v = v.strip()
		if not v:
			raise ValueError("sentence is empty")
		if v.count(BLANK) > 1:
			raise ValueError("sentence has more than one blank")
		return v

	@field_validator("options", mode="before")
	@classmethod
	def _as_tuple(cls, v):
		# option text is kept verbatim; answers are compared by exact match
		if not isinstance(v, (list, tuple)):
			raise ValueError("options must be a list")
		return tuple(v)

	@model_validator(mode="after")
	def _check_answer(self) -> "Question":
		if len(set(self.options)) != len(self.options):
			raise ValueError("options must be distinct")
		if self.correct_answer not in self.options:
			raise ValueError("correctAnswer is not one of the options")
		return self

	def blank_parts(self) -> List[str]:
		return self.sentence.split(BLANK)

	def display_sentence(self) -> str:
		return self.sentence.replace(BLANK, "______")


class ExamSettings(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	num_questions: int = Field(default=5, ge=5, le=20, alias="numQuestions")
	time_per_question: int = Field(default=60, ge=30, le=120, alias="timePerQuestion")


DEFAULT_EXAM_SETTINGS = ExamSettings()


class HistoryItem(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	level: Level | None = None
	exercise: Question
	selected_answer: str = Field(alias="selectedAnswer")
	is_correct: bool = Field(alias="isCorrect")
	# epoch milliseconds
	timestamp: int
