"""Template filters shared by the pages."""

from datetime import datetime, timedelta, timezone

from redcloud.core.jinja import fmt_date, fmt_relative

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_fmt_date():
    assert fmt_date("2024-03-05T10:00:00.000Z") == "Mar 5, 2024"
    assert fmt_date(None) == "No due date"
    assert fmt_date("garbage") == "No due date"


def test_fmt_relative_buckets():
    assert fmt_relative(NOW - timedelta(seconds=30), now=NOW) == "just now"
    assert fmt_relative(NOW - timedelta(minutes=1), now=NOW) == "1 minute ago"
    assert fmt_relative(NOW - timedelta(minutes=45), now=NOW) == "45 minutes ago"
    assert fmt_relative(NOW - timedelta(hours=3), now=NOW) == "3 hours ago"
    assert fmt_relative(NOW - timedelta(days=1), now=NOW) == "1 day ago"
    assert fmt_relative(NOW - timedelta(days=6), now=NOW) == "6 days ago"
    assert fmt_relative("2024-06-01T08:00:00Z", now=NOW) == "Jun 1, 2024"
