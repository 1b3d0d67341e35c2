import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import crud
import entitlements
from chains.companion_graph import protected_companion_invoke, canned_reply, follow_up_questions
from chains.follow_up_chain import generate_follow_up
from chains.insights_chain import generate_insights, FALLBACK_INSIGHT
from database import get_db
from dependencies import get_current_user, get_is_premium
from errors import ApiError
from rate_limit import limiter, AI_RATE_LIMIT
from schemas import ConversationRequest, FollowUpRequest, InsightsRequest, InsightsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])


def _entry_payload(entry) -> dict:
    return {
        "date": entry.entry_date.isoformat(),
        "mood_score": entry.mood_score,
        "notes": entry.notes,
        "tags": entry.tags or [],
    }


def _ai_feature_required():
    prompt = entitlements.get_upgrade_prompt("AI_FEATURE")
    return ApiError(403, prompt["title"], details={"limit": "AI_FEATURE", "upgradePrompt": prompt})


@router.post("/ai/insights", response_model=InsightsResponse)
@limiter.limit(AI_RATE_LIMIT)
async def ai_insights(request: Request, body: InsightsRequest, user=Depends(get_current_user),
                      is_premium: bool = Depends(get_is_premium), db: Session = Depends(get_db)):
    """
    Premium-only AI summary of the user's recent entries. Provider failures
    degrade to the canned insight rather than an error.
    """
    if not entitlements.get_limits(is_premium).ai_insights_enabled:
        raise _ai_feature_required()

    try:
        entries = crud.list_recent_entries(db, user.id, body.days)
        return await generate_insights([_entry_payload(e) for e in entries])
    except Exception:
        logger.error("Error generating insights", exc_info=True)
        return dict(FALLBACK_INSIGHT)


@router.post("/ai/follow-up")
@limiter.limit(AI_RATE_LIMIT)
async def ai_follow_up(request: Request, body: FollowUpRequest, user=Depends(get_current_user),
                       is_premium: bool = Depends(get_is_premium)):
    # Emergency support stays open to every tier
    if body.action_type != "emergency_support" and not entitlements.get_limits(is_premium).ai_insights_enabled:
        raise _ai_feature_required()

    logger.info(f"AI follow-up {body.action_type} for user {user.id} ({len(body.mood_history)} entries)")
    actions, fallback = await generate_follow_up(
        body.action_type,
        [entry.model_dump() for entry in body.mood_history],
        body.previous_recommendations,
    )
    response = {
        "followUpActions": actions,
        "actionType": body.action_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if fallback:
        response["fallback"] = True
    return response


@router.post("/moody/conversation")
@limiter.limit(AI_RATE_LIMIT)
async def moody_conversation(request: Request, body: ConversationRequest, user=Depends(get_current_user),
                             db: Session = Depends(get_db)):
    recent = crud.list_mood_entries(db, user.id, limit=5)
    context = ", ".join(f"{e.entry_date.isoformat()}: {e.mood_score}/10" for e in recent)

    try:
        response = await protected_companion_invoke(body.message, body.mood_score, body.conversation_type, context)
    except Exception:
        logger.error("Error in companion conversation", exc_info=True)
        response = {
            "message": canned_reply(body.mood_score),
            "tone": "supportive",
            "crisisDetected": False,
            "crisisResources": None,
            "followUpQuestions": follow_up_questions(body.mood_score),
        }

    try:
        crud.record_companion_message(
            db, user.id, body.conversation_type, body.message, response["message"],
            body.mood_score, response["crisisDetected"],
        )
    except Exception:
        logger.error("Failed to store companion message", exc_info=True)
        db.rollback()

    return {
        "success": True,
        "response": response,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
