"""
Usage Statistics.

Pure aggregation over job records ``{user_id, provider_used,
characters_used, created_at}``:

    Per user:     total_jobs, total_characters, providers_used (first-seen
                  order), last_job_at, recent_jobs (5 newest)
    Time series:  fixed buckets over a trailing window

Periods:
    day    24 hourly buckets, labelled "HH:MM"
    week   7 daily buckets, labelled "MM-DD"
    month  30 daily buckets, labelled "MM-DD"
    Anything else is treated as "week".

Bucket i covers [start + i*step, start + (i+1)*step) with start = now - span.
Labels use UTC.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tts_batch.core.logging import debug, get_logger

_LOG = get_logger("tts-batch.usage")

RECENT_JOBS = 5

# period -> (bucket count, bucket width, label format)
PERIODS: Dict[str, Tuple[int, timedelta, str]] = {
    "day": (24, timedelta(hours=1), "%H:%M"),
    "week": (7, timedelta(days=1), "%m-%d"),
    "month": (30, timedelta(days=1), "%m-%d"),
}
DEFAULT_PERIOD = "week"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string → aware UTC datetime; None if unparseable."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class JobRecord:
    user_id: str
    provider: str
    characters: int
    created_at: str
    timestamp: Optional[datetime]

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "JobRecord":
        created_at = row.get("created_at") or ""
        return cls(
            user_id=str(row.get("user_id") or ""),
            provider=str(row.get("provider_used") or ""),
            characters=int(row.get("characters_used") or 0),
            created_at=str(created_at),
            timestamp=parse_timestamp(created_at),
        )

    def sort_key(self) -> datetime:
        return self.timestamp or _EPOCH

    def recent_entry(self) -> Dict[str, Any]:
        return {"provider": self.provider, "characters": self.characters, "created_at": self.created_at}


@dataclass
class UserUsage:
    total_jobs: int = 0
    total_characters: int = 0
    providers_used: List[str] = field(default_factory=list)
    last_job: Optional[JobRecord] = None
    recent: List[JobRecord] = field(default_factory=list)

    def add(self, job: JobRecord) -> None:
        self.total_jobs += 1
        self.total_characters += job.characters
        if job.provider not in self.providers_used:
            self.providers_used.append(job.provider)
        if self.last_job is None or job.sort_key() > self.last_job.sort_key():
            self.last_job = job
        self.recent.append(job)
        self.recent.sort(key=JobRecord.sort_key, reverse=True)
        del self.recent[RECENT_JOBS:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_jobs": self.total_jobs,
            "total_characters": self.total_characters,
            "providers_used": list(self.providers_used),
            "last_job_at": self.last_job.created_at if self.last_job else None,
            "recent_jobs": [j.recent_entry() for j in self.recent],
        }


@dataclass
class UsageReport:
    period: str
    users: Dict[str, UserUsage]
    time_series: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_stats": {uid: usage.to_dict() for uid, usage in self.users.items()},
            "total_users_with_jobs": len(self.users),
            "time_series": self.time_series,
            "period": self.period,
        }


def time_series(jobs: List[JobRecord], period: str, now: datetime) -> List[Dict[str, Any]]:
    count, step, label = PERIODS.get(period, PERIODS[DEFAULT_PERIOD])
    start = now - step * count
    buckets = []
    for i in range(count):
        bucket_start = start + step * i
        bucket_end = bucket_start + step
        hits = [j for j in jobs if j.timestamp is not None and bucket_start <= j.timestamp < bucket_end]
        users: List[str] = []
        for job in hits:
            if job.user_id not in users:
                users.append(job.user_id)
        buckets.append({
            "date": bucket_start.strftime(label),
            "jobs": len(hits),
            "characters": sum(j.characters for j in hits),
            "users": users,
        })
    return buckets


def compute_usage(
    rows: Iterable[Dict[str, Any]],
    period: str = DEFAULT_PERIOD,
    now: Optional[datetime] = None,
) -> UsageReport:
    """
    Aggregate job rows into per-user totals and a time series.

    Args:
        rows: Job records as returned by the store.
        period: "day", "week" or "month"; other values behave as "week".
        now: Window end (defaults to the current UTC time).
    """
    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    jobs = [JobRecord.from_row(r) for r in rows]

    users: Dict[str, UserUsage] = {}
    for job in jobs:
        users.setdefault(job.user_id, UserUsage()).add(job)

    unparsed = sum(1 for j in jobs if j.timestamp is None)
    if unparsed:
        debug(_LOG, "usage_unparsed_timestamps", count=unparsed)

    return UsageReport(period=period, users=users, time_series=time_series(jobs, period, now))
