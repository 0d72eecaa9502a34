"""Fixed evaluation clock shared by the scoring tests."""
import datetime as dt

NOW = dt.datetime(2025, 6, 15, 12, 0, tzinfo=dt.UTC)


def days_ago(days: float) -> dt.datetime:
    return NOW - dt.timedelta(days=days)


def hours_ago(hours: float) -> dt.datetime:
    return NOW - dt.timedelta(hours=hours)


def days_ahead(days: float) -> dt.datetime:
    return NOW + dt.timedelta(days=days)
