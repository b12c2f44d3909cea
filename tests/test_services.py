# File: tests/test_services.py

from datetime import datetime

import pytest

from uservoice.models.request import RequestStatus
from uservoice.services.analytics import bucket_label, build_trend
from uservoice.services.mentions import extract_mentions
from uservoice.services.request_service import score_match


@pytest.mark.parametrize("term, title, author, score", [
    ("export", "export", "Alice", 100),
    ("exp", "Export to Excel", "Alice", 90),
    ("alice smith", "Something", "Alice Smith", 80),
    ("ali", "Something", "Alice Smith", 70),
    ("excel", "Export to Excel", "Alice", 50),
    ("smith", "Something", "Alice Smith", 40),
    ("port", "Export to Excel", "Alice", 20),
    ("mit", "Something", "Alice Smith", 10),
    ("zzz", "Export", "Alice", 0),
])
def test_score_match(term, title, author, score):
    assert score_match(term, title, author) == score


def test_extract_mentions_dedupes_case_insensitively():
    assert extract_mentions("@Ann, hi @ann. and @Bob Lee!") == ["Ann", "Bob Lee"]
    assert extract_mentions("no mentions here") == []


def test_bucket_labels():
    day = datetime(2026, 3, 5, 14, 0)
    assert bucket_label(day, "day") == "2026-03-05"
    assert bucket_label(day, "week") == "Week of Mar 2"
    assert bucket_label(day, "month") == "Mar 2026"


def test_daily_trend_is_filled():
    now = datetime(2026, 3, 10, 12, 0)
    rows = [(datetime(2026, 3, 9, 8, 0), RequestStatus.pending), (datetime(2026, 3, 9, 9, 0), RequestStatus.completed)]
    trend = build_trend(rows, "7days", now)
    assert len(trend) == 7
    assert trend[-1] == {"label": "2026-03-10", "count": 0, "pending": 0, "completed": 0}
    assert trend[-2] == {"label": "2026-03-09", "count": 2, "pending": 1, "completed": 1}


def test_monthly_trend_only_has_populated_buckets():
    rows = [(datetime(2026, 1, 3), RequestStatus.pending), (datetime(2026, 3, 1), RequestStatus.backlog)]
    trend = build_trend(rows, "90days", datetime(2026, 3, 10))
    assert [b["label"] for b in trend] == ["Jan 2026", "Mar 2026"]
