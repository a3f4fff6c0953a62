import os
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from featureforest import config
from featureforest.date_utils import format_datetime_utc, parse_offset_timestamp, span_contains


class ConfigHelperTests(unittest.TestCase):
    def test_env_bool(self) -> None:
        with patch.dict(os.environ, {"FF_TEST_FLAG": " Yes "}):
            self.assertTrue(config._env_bool("FF_TEST_FLAG"))
        with patch.dict(os.environ, {"FF_TEST_FLAG": "off"}):
            self.assertFalse(config._env_bool("FF_TEST_FLAG", True))
        with patch.dict(os.environ, {}, clear=True):
            self.assertTrue(config._env_bool("FF_TEST_FLAG", True))

    def test_env_int_falls_back_on_garbage(self) -> None:
        with patch.dict(os.environ, {"FF_TEST_INT": "12"}):
            self.assertEqual(config._env_int("FF_TEST_INT", 3), 12)
        with patch.dict(os.environ, {"FF_TEST_INT": "twelve"}):
            self.assertEqual(config._env_int("FF_TEST_INT", 3), 3)

    def test_log_level_names(self) -> None:
        self.assertIn(config.LOG_LEVEL, config.LOG_LEVELS)

    def test_env_choice(self) -> None:
        with patch.dict(os.environ, {"FF_TEST_CHOICE": "PROMOTE"}):
            self.assertEqual(config._env_choice("FF_TEST_CHOICE", "drop", {"drop", "promote"}), "promote")
        with patch.dict(os.environ, {"FF_TEST_CHOICE": "adopt"}):
            self.assertEqual(config._env_choice("FF_TEST_CHOICE", "drop", {"drop", "promote"}), "drop")


class DateUtilsTests(unittest.TestCase):
    def test_zulu_and_offsets(self) -> None:
        self.assertEqual(parse_offset_timestamp("2023-01-01T00:00:00Z"), datetime(2023, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(parse_offset_timestamp("2023-01-01t00:00:00z"), datetime(2023, 1, 1, tzinfo=timezone.utc))
        parsed = parse_offset_timestamp("2023-06-15T12:30:00.250000-04:00")
        self.assertEqual(parsed.utcoffset(), timedelta(hours=-4))
        self.assertEqual(parsed.microsecond, 250000)

    def test_rejects_missing_offset_and_non_timestamps(self) -> None:
        for value in ("2023-01-01T00:00:00", "2023-01-01", "", "yesterday", "2023-13-01T00:00:00Z"):
            with self.subTest(value=value), self.assertRaises(ValueError):
                parse_offset_timestamp(value)

    def test_fraction_widths(self) -> None:
        self.assertEqual(parse_offset_timestamp("2023-01-01T00:00:00.250Z").microsecond, 250000)
        self.assertEqual(parse_offset_timestamp("2023-01-01T00:00:00.000250Z").microsecond, 250)
        for fraction in ("2", "25", "2500", "2500000"):
            value = f"2023-01-01T00:00:00.{fraction}Z"
            with self.subTest(value=value), self.assertRaises(ValueError):
                parse_offset_timestamp(value)

    def test_rejects_compact_offsets(self) -> None:
        with self.assertRaises(ValueError):
            parse_offset_timestamp("2023-01-01T00:00:00+0200")

    def test_format_datetime_utc(self) -> None:
        value = datetime(2023, 1, 1, 2, 0, 0, 999, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(format_datetime_utc(value), "2023-01-01T00:00:00Z")

    def test_span_contains(self) -> None:
        day = timedelta(days=1)
        base = datetime(2023, 1, 1, tzinfo=timezone.utc)
        self.assertTrue(span_contains(base, base + 10 * day, base + day, base + 2 * day))
        self.assertTrue(span_contains(base, base + day, base, base + day))
        self.assertFalse(span_contains(base, base + day, base, base + 2 * day))


if __name__ == "__main__":
    unittest.main()
