from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Union

WEEK_WINDOW = 7
MONTH_WINDOW = 28
MAX_STREAK_DAYS = 365


@dataclass
class HistoryPoint:
    date: str
    wri: float

    def to_dict(self) -> dict:
        return {"date": self.date, "wri": self.wri}


@dataclass
class HistoryIndexes:
    weekly_index: Optional[float] = None
    monthly_index: Optional[float] = None
    volatility: Optional[float] = None
    trend_delta: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "weekly_index": self.weekly_index,
            "monthly_index": self.monthly_index,
            "volatility": self.volatility,
        }


@dataclass
class JournalMetrics:
    journal_entries_today: int = 0
    journal_streak: int = 0
    weekly_journal_count: int = 0
    last_journal_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "journal_entries_today": self.journal_entries_today,
            "journal_streak": self.journal_streak,
            "weekly_journal_count": self.weekly_journal_count,
            "last_journal_date": self.last_journal_date,
        }


def point_value(point: Union[HistoryPoint, dict]) -> Optional[float]:
    raw = point.get("wri") if isinstance(point, dict) else getattr(point, "wri", None)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if not math.isfinite(raw):
        return None
    return float(raw)


def window_values(history: Sequence[Union[HistoryPoint, dict]], start: int, stop: Optional[int] = None) -> Optional[List[float]]:
    """Values of ``history[start:stop]``, or None if any point in the window is unusable."""
    values = []
    for point in history[start:stop]:
        value = point_value(point)
        if value is None:
            return None
        values.append(value)
    return values


def compute_history_indexes(history: Optional[Sequence[Union[HistoryPoint, dict]]]) -> HistoryIndexes:
    """Rolling statistics over ascending daily scores.

    Windows are taken by position, one point per day. A statistic is only
    produced when its full window is present and every point in it is finite.
    """
    indexes = HistoryIndexes()
    if not history:
        return indexes
    history = list(history)
    if len(history) >= WEEK_WINDOW:
        last_week = window_values(history, -WEEK_WINDOW)
        if last_week is not None:
            indexes.weekly_index = statistics.mean(last_week)
            indexes.volatility = statistics.pstdev(last_week)
    if len(history) >= MONTH_WINDOW:
        last_month = window_values(history, -MONTH_WINDOW)
        if last_month is not None:
            indexes.monthly_index = statistics.mean(last_month)
    if len(history) >= 2 * WEEK_WINDOW and indexes.weekly_index is not None:
        prior_week = window_values(history, -2 * WEEK_WINDOW, -WEEK_WINDOW)
        if prior_week is not None:
            indexes.trend_delta = round(indexes.weekly_index - statistics.mean(prior_week), 1)
    return indexes


def compute_journal_metrics(entry_dates: Iterable[date], today: date) -> JournalMetrics:
    dates = [item for item in entry_dates if item is not None]
    if not dates:
        return JournalMetrics()
    date_set = set(dates)

    streak = 0
    day = today if today in date_set else today - timedelta(days=1)
    while day in date_set and streak < MAX_STREAK_DAYS:
        streak += 1
        day = day - timedelta(days=1)

    week_start = today - timedelta(days=WEEK_WINDOW)
    weekly_count = len({item for item in date_set if week_start <= item <= today})

    return JournalMetrics(
        journal_entries_today=sum(1 for item in dates if item == today),
        journal_streak=streak,
        weekly_journal_count=weekly_count,
        last_journal_date=max(date_set).isoformat(),
    )
