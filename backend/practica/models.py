from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class StateEntry(Base):
	__tablename__ = "state_entries"
	# One row per persisted key (theme, examSettings, practiceHistory, ...)
	key = Column(String(64), primary_key=True, index=True)
	value = Column(Text, nullable=False)  # raw string; JSON for structured values
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
