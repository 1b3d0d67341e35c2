"""
Freemium limits: what the free tier can and cannot do.

Every check here is a pure comparison against static caps; callers supply the
premium flag (see ``subscriptions.resolve_premium``) and the usage numbers.
"""
import math
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class FreemiumLimits:
    max_mood_entries_per_month: float
    max_tags_per_entry: float
    max_notes_length: float
    max_chart_history_days: int
    advanced_charts_enabled: bool
    ai_insights_enabled: bool
    data_export_enabled: bool

    def as_dict(self) -> dict:
        # inf is not valid JSON
        return {k: (None if v == math.inf else v) for k, v in asdict(self).items()}


FREE_LIMITS = FreemiumLimits(
    max_mood_entries_per_month=50,
    max_tags_per_entry=3,
    max_notes_length=200,
    max_chart_history_days=30,
    advanced_charts_enabled=False,
    ai_insights_enabled=False,
    data_export_enabled=False,
)

PREMIUM_LIMITS = FreemiumLimits(
    max_mood_entries_per_month=math.inf,
    max_tags_per_entry=math.inf,
    max_notes_length=math.inf,
    max_chart_history_days=365,
    advanced_charts_enabled=True,
    ai_insights_enabled=True,
    data_export_enabled=True,
)

UPGRADE_PROMPTS = {
    "MOOD_ENTRY_LIMIT": {
        "title": "Monthly Limit Reached",
        "message": "You've reached your 50 mood entries this month. Upgrade to Premium for unlimited tracking!",
        "cta": "Upgrade for Unlimited Entries",
    },
    "TAG_LIMIT": {
        "title": "Activity Limit",
        "message": "Free users can select up to 3 activities. Upgrade to Premium for unlimited activities!",
        "cta": "Upgrade for Unlimited Activities",
    },
    "NOTES_LIMIT": {
        "title": "Notes Too Long",
        "message": "Free users are limited to 200 characters. Upgrade to Premium for unlimited notes!",
        "cta": "Upgrade for Unlimited Notes",
    },
    "AI_FEATURE": {
        "title": "AI Feature",
        "message": "AI predictions and insights are Premium features. Upgrade to unlock smart mood analysis!",
        "cta": "Upgrade for AI Features",
    },
    "ADVANCED_CHARTS": {
        "title": "Advanced Analytics",
        "message": "Advanced charts and trends are Premium features. Upgrade to see deeper insights!",
        "cta": "Upgrade for Advanced Analytics",
    },
    "DATA_EXPORT": {
        "title": "Export Feature",
        "message": "Data export is a Premium feature. Upgrade to download your mood history!",
        "cta": "Upgrade for Data Export",
    },
}


def get_limits(is_premium: bool) -> FreemiumLimits:
    return PREMIUM_LIMITS if is_premium else FREE_LIMITS


def has_reached_mood_entry_limit(current_count: int, is_premium: bool) -> bool:
    return current_count >= get_limits(is_premium).max_mood_entries_per_month


def can_create_mood_entry(current_count: int, is_premium: bool) -> bool:
    return not has_reached_mood_entry_limit(current_count, is_premium)


def can_add_more_tags(current_tag_count: int, is_premium: bool) -> bool:
    return current_tag_count < get_limits(is_premium).max_tags_per_entry


def is_tag_count_within_limit(tag_count: int, is_premium: bool) -> bool:
    return tag_count <= get_limits(is_premium).max_tags_per_entry


def is_notes_within_limit(notes_length: int, is_premium: bool) -> bool:
    return notes_length <= get_limits(is_premium).max_notes_length


def get_upgrade_prompt(kind: str) -> dict:
    return UPGRADE_PROMPTS[kind]


def check_mood_entry(current_count: int, tag_count: int, notes_length: int, is_premium: bool) -> Optional[str]:
    """
    Returns the upgrade prompt key for the first limit a new entry would break,
    or None when the entry fits the user's tier.
    """
    if has_reached_mood_entry_limit(current_count, is_premium):
        return "MOOD_ENTRY_LIMIT"
    if not is_tag_count_within_limit(tag_count, is_premium):
        return "TAG_LIMIT"
    if not is_notes_within_limit(notes_length, is_premium):
        return "NOTES_LIMIT"
    return None


def remaining_entries(current_count: int, is_premium: bool) -> Optional[int]:
    cap = get_limits(is_premium).max_mood_entries_per_month
    if cap == math.inf:
        return None
    return max(0, int(cap) - current_count)
