"""
A/B experiment registry and deterministic variant assignment.

Assignment is a pure function of (experiment id, user id) so a user sees the
same variant on every request without any stored allocation.
"""
import hashlib
from typing import Optional

EXPERIMENTS = {
    "pricing_display": {
        "name": "Pricing Page Optimization",
        "status": "running",
        "allocation": 50,
        "variants": {
            "control": {
                "headline": "Choose Your Plan",
                "cta": "Start Free Trial",
                "description": "Select the plan that works best for you",
            },
            "treatment": {
                "headline": "Invest in Your Mental Health",
                "cta": "Start Your Journey",
                "description": "Transform your mental wellness with AI-powered insights",
            },
        },
    },
    "onboarding_flow": {
        "name": "Onboarding Flow Test",
        "status": "running",
        "allocation": 50,
        "variants": {
            "control": {"steps": 3, "guided": False, "showTips": False},
            "treatment": {"steps": 5, "guided": True, "showTips": True, "personalizedQuestions": True},
        },
    },
    "landing_page_hero": {
        "name": "Landing Page Hero Section",
        "status": "running",
        "allocation": 50,
        "variants": {
            "control": {
                "headline": "Track Your Mood, Transform Your Life",
                "subtitle": "Understand your emotions with AI-powered insights",
                "cta": "Start Free Trial",
            },
            "treatment": {
                "headline": "Finally Understand Why You Feel The Way You Do",
                "subtitle": "Stop guessing about your mental health. Get AI insights that actually help.",
                "cta": "Discover Your Patterns",
            },
        },
    },
}


def bucket(experiment_id: str, user_id: str) -> int:
    digest = hashlib.sha256(f"{experiment_id}:{user_id}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % 100


def get_variant(experiment_id: str, user_id: str, registry: dict = None) -> Optional[dict]:
    experiment = (registry or EXPERIMENTS).get(experiment_id)
    if not experiment or experiment["status"] != "running":
        return None
    variant = "treatment" if bucket(experiment_id, user_id) < experiment["allocation"] else "control"
    return {"variant": variant, "data": experiment["variants"][variant]}
