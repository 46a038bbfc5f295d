"""Date windows and bucket keys for commit timelines.

All bucketing happens in UTC. Weekly buckets start on Monday.
"""

from datetime import UTC, date, datetime, time, timedelta

from repopulse.config.periods import Granularity, TimeRange, get_period


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def start_date(time_range: TimeRange, now: datetime | None = None) -> datetime:
    """Instant `days` days before now; lower bound for range-filtered aggregates."""
    now = _as_utc(now or _utcnow())
    return now - timedelta(days=get_period(time_range).days)


def week_start(day: date) -> date:
    """Monday on or before the given day."""
    return day - timedelta(days=day.weekday())


def timeline_window(time_range: TimeRange, now: datetime | None = None) -> tuple[date, date]:
    """
    First and last bucket day of a timeline.

    Daily windows are the last `days` calendar days including today, so a
    7d timeline has exactly seven points. Weekly windows start on the Monday
    of the week that contains start_date().
    """
    now = _as_utc(now or _utcnow())
    today = now.date()
    period = get_period(time_range)

    if period.granularity is Granularity.DAILY:
        return today - timedelta(days=period.days - 1), today
    return week_start(start_date(time_range, now).date()), today


def window_lower_bound(first_bucket: date) -> datetime:
    """Midnight UTC of the first bucket; commits before it fall outside every bucket."""
    return datetime.combine(first_bucket, time.min, tzinfo=UTC)


def window_bounds(time_range: TimeRange, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Half-open [lower, upper) instant range covered by the timeline buckets.

    Every range-filtered aggregate uses these bounds so totals always equal
    the sum of the timeline points.
    """
    first, last = timeline_window(time_range, now)
    return window_lower_bound(first), window_lower_bound(last + timedelta(days=1))


def generate_buckets(start: date, end: date, granularity: Granularity) -> list[date]:
    """Every bucket day in [start, end]. Weekly buckets are Monday-aligned."""
    if granularity is Granularity.WEEKLY:
        current = week_start(start)
        step = timedelta(days=7)
    else:
        current = start
        step = timedelta(days=1)

    buckets: list[date] = []
    while current <= end:
        buckets.append(current)
        current += step
    return buckets


def bucket_key(moment: datetime | date, granularity: Granularity) -> str:
    """ISO date of the bucket a moment falls into."""
    day = _as_utc(moment).date() if isinstance(moment, datetime) else moment
    if granularity is Granularity.WEEKLY:
        day = week_start(day)
    return day.isoformat()
