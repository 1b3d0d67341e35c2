import logging
from datetime import datetime, timedelta, timezone
from typing import List
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
import crud
import entitlements
import mood_stats
from database import get_db
from dependencies import get_current_user, get_is_premium
from errors import ApiError
from schemas import MoodEntryCreate, MoodEntryOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mood"])


def _today():
    return datetime.now(timezone.utc).date()


def _upgrade_required(kind: str):
    prompt = entitlements.get_upgrade_prompt(kind)
    return ApiError(403, prompt["title"], details={"limit": kind, "upgradePrompt": prompt})


@router.get("/limits")
def get_limits(user=Depends(get_current_user), is_premium: bool = Depends(get_is_premium), db: Session = Depends(get_db)):
    used = crud.count_entries_this_month(db, user.id, _today())
    return {
        "tier": "premium" if is_premium else "free",
        "limits": entitlements.get_limits(is_premium).as_dict(),
        "usage": {
            "moodEntriesThisMonth": used,
            "remainingEntries": entitlements.remaining_entries(used, is_premium),
            "canCreateEntry": entitlements.can_create_mood_entry(used, is_premium),
        },
    }


@router.post("/mood-entries", status_code=201, response_model=MoodEntryOut)
def create_mood_entry(body: MoodEntryCreate, user=Depends(get_current_user),
                      is_premium: bool = Depends(get_is_premium), db: Session = Depends(get_db)):
    today = _today()
    entry_date = body.entry_date or today
    if entry_date > today + timedelta(days=1):
        raise ApiError(400, "Invalid request", details="entry_date cannot be in the future")

    # The cap applies to the month the entry is filed under, not the current one
    used = crud.count_entries_this_month(db, user.id, entry_date)
    violated = entitlements.check_mood_entry(used, len(body.tags), len(body.notes or ""), is_premium)
    if violated:
        logger.info(f"User {user.id} hit {violated}")
        raise _upgrade_required(violated)

    entry = crud.create_mood_entry(db, user, body.mood_score, entry_date, body.notes, body.tags)
    logger.info(f"Mood entry {entry.id} created for user {user.id}")
    return entry


@router.get("/mood-entries", response_model=List[MoodEntryOut])
def list_mood_entries(limit: int = Query(100, ge=1, le=1000), user=Depends(get_current_user),
                      is_premium: bool = Depends(get_is_premium), db: Session = Depends(get_db)):
    history_days = entitlements.get_limits(is_premium).max_chart_history_days
    since = _today() - timedelta(days=history_days - 1)
    return crud.list_mood_entries(db, user.id, since=since, limit=limit)


@router.get("/mood-entries/export")
def export_mood_entries(user=Depends(get_current_user), is_premium: bool = Depends(get_is_premium),
                        db: Session = Depends(get_db)):
    if not entitlements.get_limits(is_premium).data_export_enabled:
        raise _upgrade_required("DATA_EXPORT")

    entries = crud.list_mood_entries(db, user.id)
    filename = f"dailymood-export-{_today().isoformat()}.csv"
    return Response(
        content=mood_stats.to_csv(entries),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/mood-entries/{entry_id}", status_code=204)
def delete_mood_entry(entry_id: str, user=Depends(get_current_user), db: Session = Depends(get_db)):
    entry = crud.get_mood_entry(db, user.id, entry_id)
    if not entry:
        raise ApiError(404, "Mood entry not found")
    crud.delete_mood_entry(db, entry)
    return Response(status_code=204)


@router.get("/analytics/summary")
def mood_summary(user=Depends(get_current_user), is_premium: bool = Depends(get_is_premium),
                 db: Session = Depends(get_db)):
    limits = entitlements.get_limits(is_premium)
    today = _today()
    entries = crud.list_recent_entries(db, user.id, limits.max_chart_history_days, today)
    summary = mood_stats.summarize_entries(entries, today)
    summary["historyDays"] = limits.max_chart_history_days

    if not limits.advanced_charts_enabled:
        summary.update({"trend": None, "bestDay": None, "worstDay": None})
        summary["upgradePrompt"] = entitlements.get_upgrade_prompt("ADVANCED_CHARTS")
    return summary
