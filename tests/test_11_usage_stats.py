"""Tests for job usage aggregation."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tts_batch.services.usage_stats import compute_usage, parse_timestamp

NOW = datetime(2025, 6, 10, 12, 30, tzinfo=timezone.utc)


def _job(user, provider, chars, created_at):
    return {"user_id": user, "provider_used": provider, "characters_used": chars, "created_at": created_at}


ROWS = [
    _job("u1", "minimax", 100, "2025-06-10T10:00:00Z"),
    _job("u1", "fishaudio", 50, "2025-06-09T08:00:00+00:00"),
    _job("u2", "minimax", 20, "2025-06-10T11:15:00Z"),
    _job("u1", "minimax", 5, "2025-05-01T00:00:00Z"),
]


class TestParseTimestamp:

    @pytest.mark.parametrize("value,expected", [
        ("2025-06-10T10:00:00Z", datetime(2025, 6, 10, 10, tzinfo=timezone.utc)),
        ("2025-06-10T12:00:00+02:00", datetime(2025, 6, 10, 10, tzinfo=timezone.utc)),
        ("2025-06-10T10:00:00", datetime(2025, 6, 10, 10, tzinfo=timezone.utc)),
    ])
    def test_parses(self, value, expected):
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yesterday", 42])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestPerUser:

    def test_totals(self):
        stats = compute_usage(ROWS, now=NOW).to_dict()["job_stats"]

        u1 = stats["u1"]
        assert u1["total_jobs"] == 3
        assert u1["total_characters"] == 155
        assert u1["providers_used"] == ["minimax", "fishaudio"]
        assert u1["last_job_at"] == "2025-06-10T10:00:00Z"
        assert [j["characters"] for j in u1["recent_jobs"]] == [100, 50, 5]
        assert stats["u2"]["total_jobs"] == 1

    def test_recent_jobs_capped(self):
        rows = [_job("u1", "minimax", i, f"2025-06-0{i}T00:00:00Z") for i in range(1, 8)]
        recent = compute_usage(rows, now=NOW).to_dict()["job_stats"]["u1"]["recent_jobs"]
        assert [j["characters"] for j in recent] == [7, 6, 5, 4, 3]

    def test_report_shape(self):
        report = compute_usage(ROWS, period="week", now=NOW).to_dict()
        assert report["total_users_with_jobs"] == 2
        assert report["period"] == "week"

    def test_no_jobs(self):
        report = compute_usage([], now=NOW).to_dict()
        assert report["job_stats"] == {}
        assert report["total_users_with_jobs"] == 0
        assert all(b["jobs"] == 0 for b in report["time_series"])


class TestTimeSeries:

    def test_week_buckets(self):
        series = compute_usage(ROWS, period="week", now=NOW).time_series

        assert len(series) == 7
        assert series[0]["date"] == "06-03"
        assert series[-1]["date"] == "06-09"
        # Last bucket spans 06-09 12:30 .. 06-10 12:30
        assert series[-1]["jobs"] == 2
        assert series[-1]["characters"] == 120
        assert series[-1]["users"] == ["u1", "u2"]
        # 06-09 08:00 falls in the bucket starting 06-08 12:30
        assert series[-2]["jobs"] == 1
        assert sum(b["jobs"] for b in series) == 3

    def test_day_buckets(self):
        series = compute_usage(ROWS, period="day", now=NOW).time_series
        assert len(series) == 24
        assert series[0]["date"] == "12:30"
        assert series[-1]["date"] == "11:30"
        assert sum(b["jobs"] for b in series) == 2

    def test_month_buckets(self):
        series = compute_usage(ROWS, period="month", now=NOW).time_series
        assert len(series) == 30
        assert sum(b["jobs"] for b in series) == 3

    def test_unknown_period_behaves_as_week(self):
        report = compute_usage(ROWS, period="fortnight", now=NOW)
        assert len(report.time_series) == 7
        assert report.to_dict()["period"] == "fortnight"

    def test_unparseable_timestamps_only_in_totals(self):
        rows = ROWS + [_job("u3", "minimax", 9, "not a date")]
        report = compute_usage(rows, now=NOW).to_dict()
        assert report["job_stats"]["u3"]["total_characters"] == 9
        assert sum(b["jobs"] for b in report["time_series"]) == 3
