import os
import logging
from datetime import datetime, timezone
from typing import Optional
from google.cloud import secretmanager
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)


# Helper
def get_secret(project_id: str, secret_id: str, version_id: str = "latest") -> str:
    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode('UTF-8')
    except Exception as e:
        logger.warning(f"Could not fetch secret {secret_id}: {e}")
        return ""


def load_config(name: str, default: str = "") -> str:
    project_id = os.getenv("PROJECT_ID")
    value = get_secret(project_id, name) if project_id else ""
    return value or os.getenv(name, default)


def days_between(earlier: Optional[datetime], now: datetime) -> Optional[int]:
    if earlier is None:
        return None
    if isinstance(earlier, str):
        earlier = datetime.fromisoformat(earlier)
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    return (now - earlier).days


def select_email_type(days_since_signup: int, days_since_last_mood: Optional[int]) -> Optional[str]:
    """Picks at most one engagement email for a user, or None."""
    idle = days_since_last_mood if days_since_last_mood is not None else 999

    if days_since_signup == 1 and days_since_last_mood is None:
        return "welcome_reminder"
    if days_since_signup == 3 and idle >= 2:
        return "streak_encouragement"
    if days_since_signup == 7 and idle >= 3:
        return "weekly_check_in"
    if idle == 7:
        return "inactive_reminder"
    if idle == 30:
        return "win_back"
    return None


USERS_QUERY = text(
    "SELECT id, email, created_at, last_mood_entry_at FROM users WHERE email IS NOT NULL"
)
LOG_INSERT = text(
    "INSERT INTO email_logs (user_id, email_type, status, sent_at) "
    "VALUES (:user_id, :email_type, 'sent', :sent_at)"
)


def send_daily_reminders(engine, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    email_types = []

    with engine.begin() as conn:
        for row in conn.execute(USERS_QUERY).mappings():
            email_type = select_email_type(
                days_between(row["created_at"], now),
                days_between(row["last_mood_entry_at"], now),
            )
            if not email_type:
                continue
            # Delivery provider integration goes here; for now the send is logged
            logger.info(f"[EMAIL] Sending {email_type} to user {row['id']}")
            conn.execute(LOG_INSERT, {"user_id": row["id"], "email_type": email_type, "sent_at": now})
            email_types.append(email_type)

    logger.info(f"[CRON] Daily emails completed: {len(email_types)} emails sent")
    return {
        "success": True,
        "emailsSent": len(email_types),
        "emailTypes": email_types,
        "timestamp": now.isoformat(),
    }


# Global engine to reuse connections if warm
_engine = None


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_engine(load_config("DATABASE_URL"), pool_pre_ping=True)
    return _engine
