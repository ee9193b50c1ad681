import unittest
from datetime import date, datetime, timedelta, timezone

from tracker.core.date_parse import coerce_datetime


class CoerceDatetimeTests(unittest.TestCase):
    def test_naive_datetime_passthrough(self):
        dt = datetime(2025, 9, 17, 8, 0)
        self.assertEqual(coerce_datetime(dt), dt)

    def test_aware_datetime_converted_to_naive_utc(self):
        dt = datetime(2025, 9, 17, 8, 0, tzinfo=timezone(timedelta(hours=-4)))
        self.assertEqual(coerce_datetime(dt), datetime(2025, 9, 17, 12, 0))

    def test_date(self):
        self.assertEqual(coerce_datetime(date(2025, 9, 14)), datetime(2025, 9, 14))

    def test_iso_date(self):
        self.assertEqual(coerce_datetime("2025-09-14"), datetime(2025, 9, 14))

    def test_iso_timestamp_with_z(self):
        self.assertEqual(coerce_datetime("2025-09-14T10:15:00Z"), datetime(2025, 9, 14, 10, 15))

    def test_invalid_returns_none(self):
        self.assertIsNone(coerce_datetime("n/a"))
        self.assertIsNone(coerce_datetime("2025-02-30"))
        self.assertIsNone(coerce_datetime(""))
        self.assertIsNone(coerce_datetime(None))
        self.assertIsNone(coerce_datetime(12345))


if __name__ == "__main__":
    unittest.main()
