from __future__ import annotations
import csv
import io
import logging
import math
import time
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .schemas import HistoryItem, Level
from .store import HISTORY_KEY, MILESTONES_KEY, StateStore


logger = logging.getLogger(__name__)

MILESTONES = (3, 10, 25)
DAILY_STATS_DAYS = 7

CSV_HEADERS = [
    "Data", "Nivell", "Pregunta", "La teua Resposta", "Resposta Correcta", "Resultat", "Explicació",
]


class HistoryStats(BaseModel):
    correct_count: int
    incorrect_count: int
    accuracy: int


class DailyStats(BaseModel):
    day: date
    correct: int
    incorrect: int
    total: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def _item_date(item: HistoryItem) -> date:
    return datetime.fromtimestamp(item.timestamp / 1000).date()


class PracticeHistory:
    """Most-recent-first log of answered practice questions."""

    def __init__(self, store: StateStore, *, clock: Callable[[], int] = _now_ms) -> None:
        self._store = store
        self._clock = clock
        self._items: List[HistoryItem] = self._load()

    def _load(self) -> List[HistoryItem]:
        raw = self._store.get_json(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Stored practice history is not a list; starting empty")
            return []
        items: List[HistoryItem] = []
        for entry in raw:
            try:
                items.append(HistoryItem.model_validate(entry))
            except ValidationError:
                logger.warning("Dropping unreadable history entry: %r", entry)
        return items

    @property
    def items(self) -> List[HistoryItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def next_timestamp(self) -> int:
        # creation times never go backwards, even if the wall clock does
        now = self._clock()
        if self._items and now <= self._items[0].timestamp:
            return self._items[0].timestamp + 1
        return now

    def append(self, item: HistoryItem) -> bool:
        """Record ``item`` and return True when a share milestone was just reached."""
        self._items.insert(0, item)
        self._store.set_json(
            HISTORY_KEY, [i.model_dump(mode="json", by_alias=True) for i in self._items]
        )
        return self._check_milestone(len(self._items))

    def _check_milestone(self, count: int) -> bool:
        if count not in MILESTONES:
            return False
        shown = self._store.get_json(MILESTONES_KEY, [])
        if not isinstance(shown, list):
            shown = []
        if count in shown:
            return False
        self._store.set_json(MILESTONES_KEY, [*shown, count])
        logger.info("Share milestone reached at %d answered questions", count)
        return True

    def clear(self) -> None:
        # milestones already shown stay shown
        self._items = []
        self._store.remove(HISTORY_KEY)

    def recent_sentences(self, limit: int = 20) -> List[str]:
        return [item.exercise.sentence for item in self._items[:limit]]

    def filter(
        self,
        level: Level | str = "all",
        correctness: str = "all",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[HistoryItem]:
        return filter_items(self._items, level, correctness, start_date, end_date)


def filter_items(
    items: Sequence[HistoryItem],
    level: Level | str = "all",
    correctness: str = "all",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[HistoryItem]:
    if correctness not in ("all", "correct", "incorrect"):
        raise ValueError("correctness must be 'all', 'correct' or 'incorrect'")
    out: List[HistoryItem] = []
    for item in items:
        if level != "all":
            # old entries may not carry a level at all
            if item.level is None or item.level != Level(level):
                continue
        if correctness == "correct" and not item.is_correct:
            continue
        if correctness == "incorrect" and item.is_correct:
            continue
        if start_date is not None or end_date is not None:
            day = _item_date(item)
            if start_date is not None and day < start_date:
                continue
            if end_date is not None and day > end_date:
                continue
        out.append(item)
    return out


def aggregate(items: Sequence[HistoryItem]) -> HistoryStats:
    correct = sum(1 for item in items if item.is_correct)
    total = len(items)
    # round half up
    accuracy = math.floor(100 * correct / total + 0.5) if total else 0
    return HistoryStats(correct_count=correct, incorrect_count=total - correct, accuracy=accuracy)


def daily_stats(items: Sequence[HistoryItem], days: int = DAILY_STATS_DAYS) -> List[DailyStats]:
    """Correct/incorrect totals per practice day, oldest first, last ``days`` days with activity."""
    by_day: Dict[date, List[int]] = {}
    for item in items:
        counts = by_day.setdefault(_item_date(item), [0, 0])
        counts[0 if item.is_correct else 1] += 1
    rows = [
        DailyStats(day=day, correct=c, incorrect=i, total=c + i)
        for day, (c, i) in sorted(by_day.items())
    ]
    return rows[-days:]


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%d/%m/%Y, %H:%M")


def export_csv(items: Sequence[HistoryItem]) -> Optional[str]:
    """CSV text for ``items``, or None when there is nothing to export."""
    if not items:
        return None
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in items:
        writer.writerow([
            format_timestamp(item.timestamp),
            item.level.value if item.level else "",
            item.exercise.display_sentence(),
            item.selected_answer,
            item.exercise.correct_answer,
            "Correcte" if item.is_correct else "Incorrecte",
            item.exercise.explanation,
        ])
    return buf.getvalue().rstrip("\n")
