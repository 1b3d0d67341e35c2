from datetime import date, timedelta
from types import SimpleNamespace
import mood_stats

TODAY = date(2025, 5, 20)


def _entry(days_ago, score, notes=None, tags=None):
    return SimpleNamespace(entry_date=TODAY - timedelta(days=days_ago), mood_score=score,
                           notes=notes, tags=tags or [], created_at=None)


def test_average_mood():
    assert mood_stats.average_mood([]) is None
    assert mood_stats.average_mood([4, 5, 6]) == 5.0
    assert mood_stats.average_mood([7, 8, 8]) == 7.67


def test_trend_direction():
    assert mood_stats.trend_direction([5]) == "stable"
    assert mood_stats.trend_direction([3, 4, 7, 8]) == "improving"
    assert mood_stats.trend_direction([8, 7, 4, 3]) == "declining"
    assert mood_stats.trend_direction([5, 6, 5, 6]) == "stable"


def test_current_streak():
    days = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2), TODAY - timedelta(days=5)]
    assert mood_stats.current_streak(days, TODAY) == 3
    # Not logged today yet, streak through yesterday still counts
    assert mood_stats.current_streak(days[1:], TODAY) == 2
    assert mood_stats.current_streak([TODAY - timedelta(days=3)], TODAY) == 0


def test_summarize_entries():
    summary = mood_stats.summarize_entries([_entry(0, 9), _entry(1, 2), _entry(2, 5)], TODAY)
    assert summary["count"] == 3
    assert summary["streak"] == 3
    assert summary["bestDay"] == {"date": TODAY.isoformat(), "moodScore": 9}
    assert summary["worstDay"]["moodScore"] == 2


def test_summarize_no_entries():
    summary = mood_stats.summarize_entries([], TODAY)
    assert summary == {"count": 0, "averageMood": None, "trend": "stable", "streak": 0,
                       "bestDay": None, "worstDay": None}


def test_to_csv_quotes_notes():
    csv_text = mood_stats.to_csv([_entry(0, 6, notes='said "hi", left', tags=["work", "gym"])])
    lines = csv_text.strip().split("\n")
    assert lines[0] == "Date,Mood Score,Notes,Tags,Created At"
    assert lines[1] == '2025-05-20,6,"said ""hi"", left","work, gym",'
