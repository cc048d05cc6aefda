"""Tests for step-source payload extraction."""

from datetime import date, datetime, timedelta, timezone

from stepkernel.evolution.extractor import extract_daily_steps, extract_steps


class TestExtractSteps:
    def test_int(self):
        assert extract_steps(8000) == 8000

    def test_float_truncates(self):
        assert extract_steps(8000.9) == 8000

    def test_numeric_string(self):
        assert extract_steps(" 4200 ") == 4200

    def test_non_numeric_string(self):
        assert extract_steps("lots") is None

    def test_none(self):
        assert extract_steps(None) is None

    def test_bool_rejected(self):
        assert extract_steps(True) is None

    def test_negative_clamped(self):
        assert extract_steps(-300) == 0

    def test_nan(self):
        assert extract_steps(float("nan")) is None

    def test_infinity(self):
        assert extract_steps(float("inf")) is None

    def test_dict_known_key(self):
        assert extract_steps({"source": 3, "steps": 6100}) == 6100

    def test_dict_first_numeric_fallback(self):
        assert extract_steps({"meta": {"sum": 512}}) == 512

    def test_dict_without_numbers(self):
        assert extract_steps({"note": "none"}) is None


class TestExtractDailySteps:
    def test_date_keys(self):
        result = extract_daily_steps({date(2026, 2, 14): 100, date(2026, 2, 15): 200})
        assert result == {date(2026, 2, 14): 100, date(2026, 2, 15): 200}

    def test_iso_string_keys(self):
        result = extract_daily_steps({"2026-02-14": 100, "2026-02-15T08:00:00": 50})
        assert result == {date(2026, 2, 14): 100, date(2026, 2, 15): 50}

    def test_aware_datetime_converted(self):
        key = datetime(2026, 2, 14, 23, 0, tzinfo=timezone(timedelta(hours=-3)))
        assert extract_daily_steps({key: 10}, timezone.utc) == {date(2026, 2, 15): 10}

    def test_offset_string_matches_aware_datetime(self):
        text = "2026-10-18T23:30:00-07:00"
        moment = datetime(2026, 10, 18, 23, 30, tzinfo=timezone(timedelta(hours=-7)))
        assert extract_daily_steps({text: 10}, timezone.utc) == {date(2026, 10, 19): 10}
        assert extract_daily_steps({moment: 10}, timezone.utc) == {date(2026, 10, 19): 10}

    def test_zulu_suffix(self):
        result = extract_daily_steps({"2026-02-14T23:30:00Z": 10}, timezone(timedelta(hours=2)))
        assert result == {date(2026, 2, 15): 10}

    def test_bad_entries_skipped(self):
        result = extract_daily_steps({"garbage": 10, "2026-02-14": "n/a", "2026-02-13": 70, 42: 1})
        assert result == {date(2026, 2, 13): 70}

    def test_same_day_keeps_larger_total(self):
        result = extract_daily_steps({"2026-02-14": 300, datetime(2026, 2, 14, 9): 900})
        assert result == {date(2026, 2, 14): 900}

    def test_empty(self):
        assert extract_daily_steps({}) == {}
        assert extract_daily_steps(None) == {}

    def test_sorted(self):
        result = extract_daily_steps({"2026-02-15": 1, "2026-02-13": 1, "2026-02-14": 1})
        assert list(result) == [date(2026, 2, 13), date(2026, 2, 14), date(2026, 2, 15)]
