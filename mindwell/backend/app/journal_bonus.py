from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

BASE_BONUS = 5
POINTS_PER_ENTRY_TODAY = 3
MAX_FREQUENCY_BONUS = 10
POINTS_PER_WEEKLY_ENTRY = 2
MAX_WEEKLY_BONUS = 15
WEEKLY_MIN_ENTRIES = 3

# (minimum streak days, bonus), highest tier first
STREAK_TIERS = (
    (30, 40),
    (14, 25),
    (7, 15),
    (3, 8),
    (1, 2),
)


@dataclass(frozen=True)
class JournalBonus:
    base: int
    frequency: int
    streak: int
    weekly: int

    @property
    def total(self) -> int:
        return self.base + self.frequency + self.streak + self.weekly

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["total"] = self.total
        return payload


NO_BONUS = JournalBonus(base=0, frequency=0, streak=0, weekly=0)


def _count(value: Optional[float]) -> float:
    return value if value is not None else 0


def streak_bonus(journal_streak: Optional[float]) -> int:
    streak = _count(journal_streak)
    for minimum, bonus in STREAK_TIERS:
        if streak >= minimum:
            return bonus
    return 0


def compute_journal_bonus(
    journal_entries_today: Optional[float] = None,
    journal_streak: Optional[float] = None,
    weekly_journal_count: Optional[float] = None,
) -> JournalBonus:
    """Score reduction earned by journaling.

    Each component is gated on its own counter and the components add up
    without an overall cap. Missing counters count as zero.
    """
    entries_today = _count(journal_entries_today)
    weekly_count = _count(weekly_journal_count)

    base = BASE_BONUS if entries_today > 0 else 0
    frequency = 0
    if entries_today > 0:
        frequency = min(MAX_FREQUENCY_BONUS, int(entries_today * POINTS_PER_ENTRY_TODAY))
    weekly = 0
    if weekly_count >= WEEKLY_MIN_ENTRIES:
        weekly = min(MAX_WEEKLY_BONUS, int(weekly_count * POINTS_PER_WEEKLY_ENTRY))

    return JournalBonus(
        base=base,
        frequency=frequency,
        streak=streak_bonus(journal_streak),
        weekly=weekly,
    )


def apply_bonus(wri: float, bonus: JournalBonus) -> float:
    return max(0.0, round(wri - bonus.total, 1))
