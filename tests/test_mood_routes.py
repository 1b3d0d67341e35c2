from datetime import datetime, timedelta, timezone
import crud
from models import MoodEntry


def _today():
    return datetime.now(timezone.utc).date()


def _fill_month(db_session, user, count):
    for _ in range(count):
        db_session.add(MoodEntry(user_id=user.id, mood_score=5, tags=[], entry_date=_today()))
    db_session.commit()


# --- Create ---

def test_create_mood_entry(client, mock_auth_user):
    response = client.post("/api/mood-entries", json={
        "mood_score": 7, "notes": "  good day ", "tags": ["Work", "work", " sleep "],
    })
    assert response.status_code == 201
    body = response.json()
    assert body["mood_score"] == 7
    assert body["notes"] == "good day"
    assert body["tags"] == ["work", "sleep"]
    assert body["entry_date"] == _today().isoformat()


def test_free_user_blocked_at_monthly_cap(client, db_session, mock_auth_user):
    _fill_month(db_session, mock_auth_user, 50)

    response = client.post("/api/mood-entries", json={"mood_score": 6})
    assert response.status_code == 403
    details = response.json()["details"]
    assert details["limit"] == "MOOD_ENTRY_LIMIT"
    assert details["upgradePrompt"]["cta"]
    assert crud.count_entries_this_month(db_session, mock_auth_user.id) == 50


def test_free_user_blocked_when_backdating_into_full_month(client, db_session, mock_auth_user):
    last_month = _today().replace(day=1) - timedelta(days=1)
    for _ in range(50):
        db_session.add(MoodEntry(user_id=mock_auth_user.id, mood_score=5, tags=[], entry_date=last_month))
    db_session.commit()

    response = client.post("/api/mood-entries", json={"mood_score": 6, "entry_date": last_month.isoformat()})
    assert response.status_code == 403
    assert response.json()["details"]["limit"] == "MOOD_ENTRY_LIMIT"

    # The current month is still open
    response = client.post("/api/mood-entries", json={"mood_score": 6})
    assert response.status_code == 201


def test_free_user_one_below_cap_can_create(client, db_session, mock_auth_user):
    _fill_month(db_session, mock_auth_user, 49)

    response = client.post("/api/mood-entries", json={"mood_score": 6})
    assert response.status_code == 201


def test_premium_user_not_capped(client, db_session, premium_user, mock_auth_user):
    _fill_month(db_session, premium_user, 60)

    response = client.post("/api/mood-entries", json={"mood_score": 6, "tags": ["a", "b", "c", "d"]})
    assert response.status_code == 201


def test_free_user_tag_limit(client, mock_auth_user):
    response = client.post("/api/mood-entries", json={"mood_score": 6, "tags": ["a", "b", "c", "d"]})
    assert response.status_code == 403
    assert response.json()["details"]["limit"] == "TAG_LIMIT"


def test_free_user_notes_limit(client, mock_auth_user):
    response = client.post("/api/mood-entries", json={"mood_score": 6, "notes": "x" * 201})
    assert response.status_code == 403
    assert response.json()["details"]["limit"] == "NOTES_LIMIT"


def test_tags_collapse_after_truncation(client, mock_auth_user):
    prefix = "t" * 40
    response = client.post("/api/mood-entries", json={"mood_score": 6, "tags": [prefix + "aaaaa", prefix + "bbbbb"]})
    assert response.status_code == 201
    assert response.json()["tags"] == [prefix]


def test_premium_notes_bounded_by_request_size(client, premium_user, mock_auth_user):
    response = client.post("/api/mood-entries", json={"mood_score": 6, "notes": "x" * 5000})
    assert response.status_code == 201

    response = client.post("/api/mood-entries", json={"mood_score": 6, "notes": "x" * 5001})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_future_entry_date_rejected(client, mock_auth_user):
    future = (_today() + timedelta(days=5)).isoformat()
    response = client.post("/api/mood-entries", json={"mood_score": 6, "entry_date": future})
    assert response.status_code == 400


# --- Read ---

def test_limits_endpoint(client, db_session, mock_auth_user):
    _fill_month(db_session, mock_auth_user, 45)

    response = client.get("/api/limits")
    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "free"
    assert body["limits"]["max_mood_entries_per_month"] == 50
    assert body["usage"] == {"moodEntriesThisMonth": 45, "remainingEntries": 5, "canCreateEntry": True}


def test_list_respects_free_history_window(client, db_session, mock_auth_user):
    crud.create_mood_entry(db_session, mock_auth_user, 5, _today())
    crud.create_mood_entry(db_session, mock_auth_user, 5, _today() - timedelta(days=45))

    response = client.get("/api/mood-entries")
    assert response.status_code == 200
    assert [e["entry_date"] for e in response.json()] == [_today().isoformat()]


def test_export_requires_premium(client, mock_auth_user):
    response = client.get("/api/mood-entries/export")
    assert response.status_code == 403
    assert response.json()["details"]["limit"] == "DATA_EXPORT"


def test_export_csv_for_premium(client, db_session, premium_user, mock_auth_user):
    crud.create_mood_entry(db_session, premium_user, 8, _today(), notes="walk", tags=["outdoors"])

    response = client.get("/api/mood-entries/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().split("\n")
    assert lines[0] == "Date,Mood Score,Notes,Tags,Created At"
    assert lines[1].startswith(f"{_today().isoformat()},8,walk,outdoors,")


# --- Delete ---

def test_delete_mood_entry(client, db_session, mock_auth_user):
    entry = crud.create_mood_entry(db_session, mock_auth_user, 5, _today())

    response = client.delete(f"/api/mood-entries/{entry.id}")
    assert response.status_code == 204
    assert crud.get_mood_entry(db_session, mock_auth_user.id, entry.id) is None


def test_delete_unknown_entry(client, mock_auth_user):
    response = client.delete("/api/mood-entries/missing")
    assert response.status_code == 404
    assert response.json()["error"] == "Mood entry not found"


# --- Summary ---

def test_summary_hides_advanced_charts_for_free(client, db_session, mock_auth_user):
    crud.create_mood_entry(db_session, mock_auth_user, 4, _today() - timedelta(days=1))
    crud.create_mood_entry(db_session, mock_auth_user, 8, _today())

    body = client.get("/api/analytics/summary").json()
    assert body["count"] == 2
    assert body["averageMood"] == 6.0
    assert body["streak"] == 2
    assert body["trend"] is None
    assert body["bestDay"] is None
    assert body["upgradePrompt"]["title"]


def test_summary_for_premium(client, db_session, premium_user, mock_auth_user):
    crud.create_mood_entry(db_session, premium_user, 3, _today() - timedelta(days=1))
    crud.create_mood_entry(db_session, premium_user, 9, _today())

    body = client.get("/api/analytics/summary").json()
    assert body["trend"] == "improving"
    assert body["bestDay"] == {"date": _today().isoformat(), "moodScore": 9}
    assert body["historyDays"] == 365
    assert "upgradePrompt" not in body
