import csv
import io
from datetime import date, timedelta
from typing import Iterable, List, Optional

TREND_THRESHOLD = 0.5


def average_mood(scores: List[int]) -> Optional[float]:
    if not scores:
        return None
    return round(sum(scores) / len(scores), 2)


def trend_direction(scores_oldest_first: List[int]) -> str:
    """Compares the older half of the series with the newer half."""
    if len(scores_oldest_first) < 2:
        return "stable"
    middle = len(scores_oldest_first) // 2
    older = scores_oldest_first[:middle]
    newer = scores_oldest_first[middle:]
    delta = sum(newer) / len(newer) - sum(older) / len(older)
    if delta > TREND_THRESHOLD:
        return "improving"
    if delta < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def current_streak(entry_dates: Iterable[date], today: date) -> int:
    days = set(entry_dates)
    # A streak is still alive if the last entry was yesterday
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def summarize_entries(entries, today: date) -> dict:
    ordered = sorted(entries, key=lambda e: e.entry_date)
    scores = [e.mood_score for e in ordered]
    summary = {
        "count": len(ordered),
        "averageMood": average_mood(scores),
        "trend": trend_direction(scores),
        "streak": current_streak((e.entry_date for e in ordered), today),
        "bestDay": None,
        "worstDay": None,
    }
    if ordered:
        best = max(ordered, key=lambda e: e.mood_score)
        worst = min(ordered, key=lambda e: e.mood_score)
        summary["bestDay"] = {"date": best.entry_date.isoformat(), "moodScore": best.mood_score}
        summary["worstDay"] = {"date": worst.entry_date.isoformat(), "moodScore": worst.mood_score}
    return summary


def to_csv(entries) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Date", "Mood Score", "Notes", "Tags", "Created At"])
    for entry in entries:
        writer.writerow([
            entry.entry_date.isoformat(),
            entry.mood_score,
            entry.notes or "",
            ", ".join(entry.tags or []),
            entry.created_at.isoformat() if entry.created_at else "",
        ])
    return buffer.getvalue()
