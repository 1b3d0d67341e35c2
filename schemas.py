from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MoodEntryCreate(BaseModel):
    mood_score: int = Field(..., ge=1, le=10)
    # Request-size guards for every tier; the freemium caps live in entitlements
    notes: Optional[str] = Field(None, max_length=5000)
    tags: List[str] = Field(default_factory=list, max_length=50)
    entry_date: Optional[date] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, tags):
        cleaned = []
        for tag in tags:
            tag = tag.strip().lower()[:40]
            if tag and tag not in cleaned:
                cleaned.append(tag)
        return cleaned

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, notes):
        if notes is None:
            return None
        return notes.strip() or None


class MoodEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mood_score: int
    notes: Optional[str] = None
    tags: List[str] = []
    entry_date: date
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: Optional[str] = None
    subscription_tier: str
    created_at: Optional[datetime] = None


class InsightsRequest(BaseModel):
    days: int = Field(7, ge=1, le=90)


class InsightsResponse(BaseModel):
    summary: str
    trend: str
    suggestion: str


class ConversationRequest(BaseModel):
    message: Optional[str] = Field(None, max_length=2000)
    mood_score: Optional[int] = Field(None, ge=1, le=10)
    conversation_type: Literal["mood_entry", "follow_up", "general_chat", "crisis_check"] = "general_chat"


class CheckoutRequest(BaseModel):
    price_id: Optional[str] = None


class SubscriptionActionRequest(BaseModel):
    subscription_id: str


class AnalyticsEventRequest(BaseModel):
    event_name: str = Field(..., min_length=1, max_length=100)
    event_data: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None


class ErrorReport(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    level: Literal["error", "warning", "info"] = "error"
    stack: Optional[str] = Field(None, max_length=10000)
    url: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    session_id: Optional[str] = None
    service: str = "web"
    environment: str = "unknown"


class ConversionRequest(BaseModel):
    event_data: Dict[str, Any] = Field(default_factory=dict)


class FollowUpMoodEntry(BaseModel):
    date: Optional[str] = None
    mood_score: int = Field(..., ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=5000)
    tags: List[str] = Field(default_factory=list)


class FollowUpRequest(BaseModel):
    action_type: Literal["check_progress", "get_tips", "emergency_support"]
    mood_history: List[FollowUpMoodEntry]
    previous_recommendations: Optional[str] = Field(None, max_length=4000)
