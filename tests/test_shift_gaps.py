from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from hys_backend.errors import InvalidInputError
from hys_backend.services.personnel_normalizer import PersonRecord
from hys_backend.services.shift_gaps import (
    DEFAULT_GRACE_MINUTES,
    extract_hour_minute,
    find_missing_checkins,
    parse_check_time,
    parse_grace_minutes,
    target_shift_start,
)

ISTANBUL = ZoneInfo("Europe/Istanbul")


class ExtractHourMinuteTests(unittest.TestCase):
    def test_accepted_formats(self) -> None:
        cases = {
            "2026-10-19T09:00:00+03:00": (9, 0),
            "2026-10-19T09:00:00Z": (9, 0),
            "2026-10-19T09:00:00.250+03:00": (9, 0),
            "2026-10-19 08:30:15": (8, 30),
            "2026-10-19 08:30": (8, 30),
            "2026-10-19T21:45:00": (21, 45),
            "2026-10-19T21:45": (21, 45),
            "19.10.2026 07:15:00": (7, 15),
            "19.10.2026 07:15": (7, 15),
            "13:05:59": (13, 5),
            "13:05": (13, 5),
            "9:00": (9, 0),
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(extract_hour_minute(value), expected)

    def test_regex_fallback_finds_embedded_clock(self) -> None:
        self.assertEqual(extract_hour_minute("Sabah 09.30 vardiyasi"), (9, 30))
        self.assertEqual(extract_hour_minute("19/10/2026 18:00"), (18, 0))

    def test_unparseable_values(self) -> None:
        for value in ("", "   ", None, "yok", "25:99", "9:5", "09:5:00", "2026-10-19 9:5"):
            with self.subTest(value=value):
                self.assertIsNone(extract_hour_minute(value))


class ParseCheckTimeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime(2026, 10, 19, 14, 12, 33, 123, tzinfo=ISTANBUL)

    def test_empty_value_is_now(self) -> None:
        self.assertEqual(parse_check_time("  ", self.now), self.now)

    def test_bare_clock_uses_todays_date(self) -> None:
        self.assertEqual(
            parse_check_time("09:20", self.now),
            datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL),
        )
        self.assertEqual(
            parse_check_time("09:20:05", self.now),
            datetime(2026, 10, 19, 9, 20, 5, tzinfo=ISTANBUL),
        )

    def test_naive_datetime_gets_local_timezone(self) -> None:
        parsed = parse_check_time("2026-10-01 08:00", self.now)

        self.assertEqual(parsed, datetime(2026, 10, 1, 8, 0, tzinfo=ISTANBUL))

    def test_offset_datetime_is_kept(self) -> None:
        parsed = parse_check_time("2026-10-01T08:00:00Z", self.now)

        self.assertEqual(parsed.utcoffset(), timedelta(0))
        self.assertEqual((parsed.hour, parsed.minute), (8, 0))

    def test_regex_fallback_lands_on_today(self) -> None:
        self.assertEqual(
            parse_check_time("saat 9.45", self.now),
            datetime(2026, 10, 19, 9, 45, tzinfo=ISTANBUL),
        )

    def test_unparseable_value_is_invalid_input(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            parse_check_time("yarin", self.now)

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "INVALID_CHECK_TIME")

    def test_single_digit_minute_is_invalid_input(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            parse_check_time("9:5", self.now)

        self.assertEqual(ctx.exception.code, "INVALID_CHECK_TIME")


class GraceMinutesTests(unittest.TestCase):
    def test_default_when_missing(self) -> None:
        self.assertEqual(parse_grace_minutes(None), DEFAULT_GRACE_MINUTES)
        self.assertEqual(parse_grace_minutes(""), DEFAULT_GRACE_MINUTES)

    def test_zero_is_allowed(self) -> None:
        self.assertEqual(parse_grace_minutes("0"), 0)

    def test_negative_or_non_numeric_is_rejected(self) -> None:
        for value in ("-5", "abc", "1.5"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidInputError) as ctx:
                    parse_grace_minutes(value)
                self.assertEqual(ctx.exception.code, "INVALID_GRACE_MINUTES")

    def test_target_rejects_negative_grace(self) -> None:
        with self.assertRaises(InvalidInputError):
            target_shift_start(datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL), -5)

    def test_target_crosses_midnight(self) -> None:
        target = target_shift_start(datetime(2026, 10, 19, 0, 10, tzinfo=ISTANBUL), 20)

        self.assertEqual((target.day, target.hour, target.minute), (18, 23, 50))

    def test_target_keeps_fixed_offset(self) -> None:
        offset = timezone(timedelta(hours=3))
        target = target_shift_start(datetime(2026, 10, 19, 9, 20, tzinfo=offset), 20)

        self.assertEqual(target, datetime(2026, 10, 19, 9, 0, tzinfo=offset))


class FindMissingCheckinsTests(unittest.TestCase):
    def test_only_records_without_checkin_are_flagged(self) -> None:
        records = [
            PersonRecord(tc="111", ad="Ayse", soyad="Yilmaz", vardiya_baslangic="09:00", giris_saati=""),
            PersonRecord(tc="222", ad="Mehmet", soyad="Demir", vardiya_baslangic="09:00", giris_saati="09:05"),
        ]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL), 20)

        self.assertEqual(len(warnings), 1)
        self.assertEqual(
            warnings[0].to_dict(),
            {
                "tc": "111",
                "ad": "Ayse",
                "soyad": "Yilmaz",
                "vardiya_baslangic": "09:00",
                "giris_saati": "",
            },
        )

    def test_zero_grace_matches_check_minute(self) -> None:
        records = [
            PersonRecord(tc="1", vardiya_baslangic="09:20"),
            PersonRecord(tc="2", vardiya_baslangic="09:00"),
        ]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 9, 20, 59, tzinfo=ISTANBUL), 0)

        self.assertEqual([warning.tc for warning in warnings], ["1"])

    def test_date_of_shift_start_is_ignored(self) -> None:
        records = [PersonRecord(tc="1", vardiya_baslangic="2020-01-01 09:00:00")]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL), 20)

        self.assertEqual([warning.tc for warning in warnings], ["1"])

    def test_whitespace_checkin_counts_as_empty_and_any_value_excludes(self) -> None:
        records = [
            PersonRecord(tc="1", vardiya_baslangic="09:00", giris_saati="   "),
            PersonRecord(tc="2", vardiya_baslangic="09:00", giris_saati="23:59"),
        ]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL), 20)

        self.assertEqual([warning.tc for warning in warnings], ["1"])
        self.assertEqual(warnings[0].giris_saati, "")

    def test_unparseable_shift_start_is_skipped(self) -> None:
        records = [
            PersonRecord(tc="1", vardiya_baslangic=""),
            PersonRecord(tc="2", vardiya_baslangic="izinli"),
            PersonRecord(tc="3", vardiya_baslangic="19.10.2026 09:00"),
            PersonRecord(tc="4", vardiya_baslangic="9:0"),
        ]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 9, 20, tzinfo=ISTANBUL), 20)

        self.assertEqual([warning.tc for warning in warnings], ["3"])

    def test_upstream_order_is_preserved(self) -> None:
        records = [PersonRecord(tc=str(index), vardiya_baslangic="08:00") for index in (5, 3, 9)]

        warnings = find_missing_checkins(records, datetime(2026, 10, 19, 8, 20, tzinfo=ISTANBUL), 20)

        self.assertEqual([warning.tc for warning in warnings], ["5", "3", "9"])


if __name__ == "__main__":
    unittest.main()
