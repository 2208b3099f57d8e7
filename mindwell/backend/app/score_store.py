from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from .history_engine import HistoryPoint
from .wri_engine import WriOutput

log = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3
DEFAULT_HISTORY_LIMIT = 60


class ScoreConflictError(Exception):
    """Raised when a daily score keeps losing concurrent writes."""

    def __init__(self, user_id: int, score_date: date, attempts: int) -> None:
        super().__init__(f"Daily score for user {user_id} on {score_date.isoformat()} changed during {attempts} attempts")
        self.user_id = user_id
        self.score_date = score_date
        self.attempts = attempts


def read_history(
    user_id: int,
    db,
    limit: int = DEFAULT_HISTORY_LIMIT,
    exclude_date: Optional[date] = None,
    start_date: Optional[date] = None,
) -> List[HistoryPoint]:
    from .main import DailyScore

    query = db.query(DailyScore).filter(DailyScore.user_id == user_id)
    if exclude_date is not None:
        query = query.filter(DailyScore.score_date != exclude_date)
    if start_date is not None:
        query = query.filter(DailyScore.score_date >= start_date)
    rows = query.order_by(DailyScore.score_date.desc()).limit(limit).all()
    return [HistoryPoint(date=row.score_date.isoformat(), wri=row.wri) for row in reversed(rows)]


def get_daily_score(user_id: int, score_date: date, db):
    from .main import DailyScore

    return (
        db.query(DailyScore)
        .filter(DailyScore.user_id == user_id, DailyScore.score_date == score_date)
        .first()
    )


def _score_values(output: WriOutput) -> dict:
    return {
        "wri": output.wri,
        "base_wri": output.base_wri,
        "journal_bonus": output.journal_bonus.total,
        "risk_band": output.risk_band,
        "payload_json": json.dumps(output.to_dict()),
        "updated_at": datetime.utcnow(),
    }


def write_daily_score(
    user_id: int,
    score_date: date,
    build: Callable[[], Tuple[WriOutput, int]],
    db,
):
    """Store the day's score with compare-and-swap on the row version.

    ``build`` returns the output and the journal entry count it was computed
    from. It is re-run on every attempt so that each write is computed from
    state read after the row version was observed.
    """
    from .main import DailyScore

    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        existing = get_daily_score(user_id, score_date, db)
        seen_version = existing.version if existing else None
        output, journal_entries = build()
        values = _score_values(output)
        values["journal_entries_counted"] = journal_entries
        try:
            if existing is None:
                db.add(DailyScore(user_id=user_id, score_date=score_date, version=1, **values))
                db.commit()
            else:
                values["version"] = seen_version + 1
                updated = (
                    db.query(DailyScore)
                    .filter(DailyScore.id == existing.id, DailyScore.version == seen_version)
                    .update(values, synchronize_session=False)
                )
                if updated == 0:
                    db.rollback()
                    log.warning(
                        "Daily score for user %s on %s changed concurrently (attempt %s)",
                        user_id, score_date, attempt,
                    )
                    continue
                db.commit()
        except IntegrityError:
            db.rollback()
            log.warning(
                "Daily score for user %s on %s was created concurrently (attempt %s)",
                user_id, score_date, attempt,
            )
            continue
        log.info(
            "Stored daily score for user %s on %s: wri=%s bonus=%s",
            user_id, score_date, output.wri, output.journal_bonus.total,
        )
        return get_daily_score(user_id, score_date, db)

    log.error("Giving up on daily score for user %s on %s after %s attempts", user_id, score_date, MAX_WRITE_ATTEMPTS)
    raise ScoreConflictError(user_id, score_date, MAX_WRITE_ATTEMPTS)


def load_payload(row) -> dict:
    payload = json.loads(row.payload_json or "{}")
    payload["date"] = row.score_date.isoformat()
    payload["version"] = row.version
    return payload
