import uuid
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, JSON, String, Text,
)
from sqlalchemy.sql import func
from database import Base


def _uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # auth provider uid
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    subscription_tier = Column(String, default="free", nullable=False)  # free, premium
    stripe_customer_id = Column(String, nullable=True, index=True)
    last_mood_entry_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class MoodEntry(Base):
    __tablename__ = "mood_entries"
    __table_args__ = (
        CheckConstraint("mood_score >= 1 AND mood_score <= 10", name="ck_mood_score_range"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mood_score = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, default=list)
    entry_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True)  # Stripe subscription id
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    stripe_customer_id = Column(String, nullable=True)
    status = Column(String, nullable=False)  # active, trialing, past_due, canceled, incomplete, unpaid
    price_id = Column(String, nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    event_data = Column(JSON, default=dict)
    session_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CompanionMessage(Base):
    __tablename__ = "companion_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_type = Column(String, nullable=False)
    message = Column(Text, nullable=True)
    reply = Column(Text, nullable=False)
    mood_score = Column(Integer, nullable=True)
    crisis_detected = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class EmailLog(Base):
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email_type = Column(String, nullable=False)
    status = Column(String, default="sent")
    sent_at = Column(DateTime(timezone=True), server_default=func.now())
