from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from models import AnalyticsEvent, CompanionMessage, MoodEntry, Subscription, User
import logging

logger = logging.getLogger(__name__)


# --- Users ---

def get_user(db: Session, user_id: str):
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email).first()


def get_user_by_customer(db: Session, stripe_customer_id: str):
    return db.query(User).filter(User.stripe_customer_id == stripe_customer_id).first()


def create_user(db: Session, user_id: str, email: str, display_name: str = None):
    db_user = User(id=user_id, email=email, display_name=display_name, subscription_tier="free")
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def ensure_user(db: Session, user_id: str, email: str, display_name: str = None):
    """Upserts the denormalized copy of an authenticated user."""
    user = get_user(db, user_id)
    if not user:
        return create_user(db, user_id, email, display_name)

    changed = False
    if email and user.email != email:
        user.email = email
        changed = True
    if display_name and user.display_name != display_name:
        user.display_name = display_name
        changed = True
    if changed:
        db.commit()
        db.refresh(user)
    return user


def set_user_tier(db: Session, user: User, tier: str):
    if user.subscription_tier != tier:
        logger.info(f"User {user.id} tier {user.subscription_tier} -> {tier}")
        user.subscription_tier = tier
        db.commit()
        db.refresh(user)
    return user


def link_stripe_customer(db: Session, user: User, stripe_customer_id: str):
    user.stripe_customer_id = stripe_customer_id
    db.commit()
    db.refresh(user)
    return user


# --- Mood entries ---

def month_bounds(today: date):
    start = today.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def count_entries_this_month(db: Session, user_id: str, today: Optional[date] = None) -> int:
    start, end = month_bounds(today or datetime.now(timezone.utc).date())
    return (
        db.query(func.count(MoodEntry.id))
        .filter(MoodEntry.user_id == user_id)
        .filter(MoodEntry.entry_date >= start)
        .filter(MoodEntry.entry_date < end)
        .scalar()
    )


def create_mood_entry(db: Session, user: User, mood_score: int, entry_date: date,
                      notes: str = None, tags: List[str] = None):
    entry = MoodEntry(
        user_id=user.id,
        mood_score=mood_score,
        notes=notes,
        tags=tags or [],
        entry_date=entry_date,
    )
    db.add(entry)
    user.last_mood_entry_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(entry)
    return entry


def list_mood_entries(db: Session, user_id: str, since: Optional[date] = None, limit: int = None):
    query = db.query(MoodEntry).filter(MoodEntry.user_id == user_id)
    if since is not None:
        query = query.filter(MoodEntry.entry_date >= since)
    query = query.order_by(MoodEntry.entry_date.desc(), MoodEntry.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_recent_entries(db: Session, user_id: str, days: int, today: Optional[date] = None):
    today = today or datetime.now(timezone.utc).date()
    return list_mood_entries(db, user_id, since=today - timedelta(days=days - 1))


def get_mood_entry(db: Session, user_id: str, entry_id: str):
    return (
        db.query(MoodEntry)
        .filter(MoodEntry.id == entry_id)
        .filter(MoodEntry.user_id == user_id)
        .first()
    )


def delete_mood_entry(db: Session, entry: MoodEntry):
    db.delete(entry)
    db.commit()


# --- Subscriptions ---

def get_subscription(db: Session, subscription_id: str):
    return db.query(Subscription).filter(Subscription.id == subscription_id).first()


def list_subscriptions(db: Session, user_id: str):
    return db.query(Subscription).filter(Subscription.user_id == user_id).all()


def upsert_subscription(db: Session, user_id: str, data: dict):
    """Stores the provider's view of a subscription. The last write wins."""
    subscription = get_subscription(db, data["id"])
    if not subscription:
        subscription = Subscription(id=data["id"], user_id=user_id)
        db.add(subscription)

    subscription.user_id = user_id
    subscription.status = data["status"]
    subscription.stripe_customer_id = data.get("customer") or subscription.stripe_customer_id
    subscription.price_id = data.get("price_id") or subscription.price_id
    subscription.current_period_end = data.get("current_period_end")
    subscription.cancel_at_period_end = bool(data.get("cancel_at_period_end"))
    subscription.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(subscription)
    return subscription


# --- Events ---

def record_event(db: Session, event_name: str, user_id: str = None, event_data: dict = None,
                 session_id: str = None):
    event = AnalyticsEvent(
        user_id=user_id,
        event_name=event_name,
        event_data=event_data or {},
        session_id=session_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def record_companion_message(db: Session, user_id: str, conversation_type: str, message: str,
                             reply: str, mood_score: int = None, crisis_detected: bool = False):
    row = CompanionMessage(
        user_id=user_id,
        conversation_type=conversation_type,
        message=message,
        reply=reply,
        mood_score=mood_score,
        crisis_detected=crisis_detected,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
