import math
import unittest
from datetime import date, timedelta

from mindwell.backend.app.history_engine import HistoryPoint, compute_history_indexes, compute_journal_metrics


def series(values, start=date(2025, 1, 1)):
    return [HistoryPoint(date=(start + timedelta(days=index)).isoformat(), wri=value) for index, value in enumerate(values)]


class HistoryIndexTests(unittest.TestCase):
    def test_no_history_gives_no_statistics(self):
        indexes = compute_history_indexes(None)
        self.assertIsNone(indexes.weekly_index)
        self.assertIsNone(indexes.monthly_index)
        self.assertIsNone(indexes.volatility)
        self.assertIsNone(indexes.trend_delta)

    def test_partial_week_is_not_enough(self):
        indexes = compute_history_indexes(series([10, 20, 30, 40, 50, 60]))
        self.assertIsNone(indexes.weekly_index)
        self.assertIsNone(indexes.volatility)

    def test_weekly_index_and_volatility(self):
        indexes = compute_history_indexes(series([99, 0, 0, 0, 0, 0, 0, 70]))
        self.assertEqual(indexes.weekly_index, 10)
        self.assertAlmostEqual(indexes.volatility, math.sqrt(600))
        self.assertIsNone(indexes.monthly_index)
        self.assertIsNone(indexes.trend_delta)

    def test_monthly_index_uses_last_28_points(self):
        indexes = compute_history_indexes(series([100] * 2 + [20] * 28))
        self.assertEqual(indexes.monthly_index, 20)

    def test_trend_delta_compares_with_prior_week(self):
        rising = compute_history_indexes(series([30] * 7 + [40] * 7))
        falling = compute_history_indexes(series([40] * 7 + [30] * 7))
        flat = compute_history_indexes(series([40] * 7 + [43] * 7))
        self.assertEqual(rising.trend_delta, 10.0)
        self.assertEqual(falling.trend_delta, -10.0)
        self.assertEqual(flat.trend_delta, 3.0)

    def test_accepts_plain_dicts(self):
        points = [{"date": f"2025-01-{day:02d}", "wri": 10.0} for day in range(1, 8)]
        indexes = compute_history_indexes(points)
        self.assertEqual(indexes.weekly_index, 10.0)
        self.assertEqual(indexes.volatility, 0.0)

    def test_bad_point_voids_only_its_own_window(self):
        values = [50.0] * 7 + [20.0] * 7
        values[2] = float("nan")
        indexes = compute_history_indexes(series(values))
        self.assertEqual(indexes.weekly_index, 20.0)
        self.assertIsNone(indexes.trend_delta)

        values = [50.0] * 7 + [20.0] * 7
        values[-1] = None
        indexes = compute_history_indexes(series(values))
        self.assertIsNone(indexes.weekly_index)
        self.assertIsNone(indexes.volatility)
        self.assertIsNone(indexes.trend_delta)


class JournalMetricsTests(unittest.TestCase):
    today = date(2025, 3, 10)

    def test_empty_history(self):
        metrics = compute_journal_metrics([], self.today)
        self.assertEqual(metrics.to_dict(), {
            "journal_entries_today": 0,
            "journal_streak": 0,
            "weekly_journal_count": 0,
            "last_journal_date": None,
        })

    def test_streak_counts_back_from_today(self):
        dates = [date(2025, 3, 10), date(2025, 3, 10), date(2025, 3, 9), date(2025, 3, 8), date(2025, 3, 6)]
        metrics = compute_journal_metrics(dates, self.today)
        self.assertEqual(metrics.journal_entries_today, 2)
        self.assertEqual(metrics.journal_streak, 3)
        self.assertEqual(metrics.weekly_journal_count, 4)
        self.assertEqual(metrics.last_journal_date, "2025-03-10")

    def test_streak_survives_until_a_full_day_is_missed(self):
        metrics = compute_journal_metrics([date(2025, 3, 9), date(2025, 3, 8)], self.today)
        self.assertEqual(metrics.journal_entries_today, 0)
        self.assertEqual(metrics.journal_streak, 2)

        broken = compute_journal_metrics([date(2025, 3, 8)], self.today)
        self.assertEqual(broken.journal_streak, 0)

    def test_weekly_window_includes_seven_days_back(self):
        dates = [date(2025, 3, 3), date(2025, 3, 2)]
        metrics = compute_journal_metrics(dates, self.today)
        self.assertEqual(metrics.weekly_journal_count, 1)
        self.assertEqual(metrics.last_journal_date, "2025-03-03")

    def test_streak_is_bounded(self):
        dates = [self.today - timedelta(days=offset) for offset in range(400)]
        self.assertEqual(compute_journal_metrics(dates, self.today).journal_streak, 365)


if __name__ == "__main__":
    unittest.main()
