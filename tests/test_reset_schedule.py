import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from mapcache.core.map_models import CachedMapMetadata
from mapcache.services.reset_schedule import ResetScheduler, first_thursday_reset, is_stale

UTC = timezone.utc


def _meta(cached_at, custom=False):
    return CachedMapMetadata(seed=1, size=2, cached_at=cached_at, is_custom_map=custom)


class FirstThursdayTests(unittest.TestCase):
    def test_march_2024(self):
        now = datetime(2024, 3, 20, 9, 30, tzinfo=UTC)
        self.assertEqual(first_thursday_reset(now), datetime(2024, 3, 7, 18, 0, tzinfo=UTC))

    def test_month_starting_on_thursday(self):
        # 2024-02-01 is a Thursday.
        now = datetime(2024, 2, 15, tzinfo=UTC)
        self.assertEqual(first_thursday_reset(now), datetime(2024, 2, 1, 18, 0, tzinfo=UTC))

    def test_month_boundary_uses_reference_timezone(self):
        # 23:30 UTC on Feb 29 is already March 1 in UTC+2.
        now = datetime(2024, 2, 29, 23, 30, tzinfo=UTC)
        self.assertEqual(first_thursday_reset(now), datetime(2024, 3, 7, 18, 0, tzinfo=UTC))

    def test_naive_now_is_treated_as_utc(self):
        self.assertEqual(
            first_thursday_reset(datetime(2024, 3, 20)),
            datetime(2024, 3, 7, 18, 0, tzinfo=UTC),
        )

    def test_custom_reset_time(self):
        now = datetime(2024, 3, 20, tzinfo=UTC)
        reset = first_thursday_reset(now, reset_tz=UTC, hour=19, minute=30)
        self.assertEqual(reset, datetime(2024, 3, 7, 19, 30, tzinfo=UTC))

    def test_result_is_always_a_thursday_in_first_week(self):
        for month in range(1, 13):
            reset = first_thursday_reset(datetime(2025, month, 15, tzinfo=UTC))
            local = reset.astimezone(timezone(timedelta(hours=2)))
            self.assertEqual(local.weekday(), 3)
            self.assertLessEqual(local.day, 7)
            self.assertEqual((local.hour, local.minute), (20, 0))


class StalenessTests(unittest.TestCase):
    reset = datetime(2024, 3, 7, 18, 0, tzinfo=UTC)

    def test_cached_before_reset_is_stale_after_reset(self):
        self.assertTrue(is_stale(_meta(self.reset - timedelta(days=3)), self.reset + timedelta(hours=1), self.reset))

    def test_cached_exactly_at_reset_is_not_stale(self):
        self.assertFalse(is_stale(_meta(self.reset), self.reset + timedelta(days=1), self.reset))

    def test_not_stale_before_reset(self):
        for cached_at in (self.reset - timedelta(days=30), self.reset - timedelta(seconds=1)):
            self.assertFalse(is_stale(_meta(cached_at), self.reset - timedelta(seconds=1), self.reset))

    def test_cached_after_reset_stays_fresh(self):
        self.assertFalse(is_stale(_meta(self.reset + timedelta(hours=1)), self.reset + timedelta(days=20), self.reset))

    def test_missing_timestamp_and_custom_flag(self):
        now = self.reset + timedelta(days=1)
        self.assertFalse(is_stale(_meta(None), now, self.reset))
        self.assertTrue(is_stale(_meta(self.reset - timedelta(days=1), custom=True), now, self.reset))
        self.assertFalse(is_stale(None, now, self.reset))


class PurgeIfDueTests(unittest.TestCase):
    def setUp(self):
        self.metadata_store = Mock()
        self.metadata_store.sweep.return_value = []
        self.image_store = Mock()
        self.image_store.sweep.return_value = []
        self.scheduler = ResetScheduler(self.metadata_store, self.image_store, log_action=Mock())
        self.reset = datetime(2024, 3, 7, 18, 0, tzinfo=UTC)

    def test_sweeps_once_per_reset_point(self):
        now = self.reset + timedelta(hours=2)
        self.assertTrue(self.scheduler.purge_if_due(self.reset, now, {"a"}, {"/img/a.png"}))
        self.assertFalse(self.scheduler.purge_if_due(self.reset, now + timedelta(hours=6), {"a"}, set()))
        self.metadata_store.sweep.assert_called_once_with({"a"})
        self.image_store.sweep.assert_called_once_with({"/img/a.png"})
        self.assertEqual(self.scheduler.last_purge_at, self.reset)

    def test_noop_before_reset(self):
        self.assertFalse(self.scheduler.purge_if_due(self.reset, self.reset - timedelta(seconds=1), set(), set()))
        self.metadata_store.sweep.assert_not_called()
        self.assertIsNone(self.scheduler.last_purge_at)

    def test_next_reset_point_triggers_again(self):
        self.scheduler.purge_if_due(self.reset, self.reset, set(), set())
        april = datetime(2024, 4, 4, 18, 0, tzinfo=UTC)
        self.assertTrue(self.scheduler.purge_if_due(april, april + timedelta(minutes=1), set(), set()))
        self.assertFalse(self.scheduler.purge_if_due(self.reset, april + timedelta(minutes=2), set(), set()))
        self.assertEqual(self.metadata_store.sweep.call_count, 2)

    def test_concurrent_calls_sweep_once(self):
        now = self.reset + timedelta(hours=1)
        threads = [
            threading.Thread(target=self.scheduler.purge_if_due, args=(self.reset, now, set(), set()))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(self.metadata_store.sweep.call_count, 1)

    def test_clock_defaults(self):
        scheduler = ResetScheduler(
            self.metadata_store,
            self.image_store,
            clock=lambda: datetime(2024, 3, 9, tzinfo=UTC),
        )
        self.assertEqual(scheduler.next_reset_point(), self.reset)
        self.assertTrue(scheduler.is_stale(_meta(datetime(2024, 3, 1, tzinfo=UTC))))


if __name__ == "__main__":
    unittest.main()
