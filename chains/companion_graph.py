from typing import Optional, TypedDict
import random
import logging
import httpx
import asyncio
from langgraph.graph import StateGraph, END
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import StrOutputParser
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
from google.api_core.exceptions import GoogleAPICallError, ServiceUnavailable
from .guardrails import detect_crisis, deidentify_content, CRISIS_RESOURCES
from .insights_chain import get_llm

logger = logging.getLogger(__name__)

CONVERSATION_TYPES = ("mood_entry", "follow_up", "general_chat", "crisis_check")

CANNED_REPLIES = {
    "crisis": [
        "I'm really concerned about how you're feeling right now. Your emotions are completely valid, and you don't have to go through this alone. 💙",
        "It sounds like things are really tough right now. I'm here with you, and I want you to know that what you're feeling matters deeply. 🫂",
    ],
    "low": [
        "I hear you, and I want you to know that having difficult days is completely normal. You're not alone in feeling this way. 🌙",
        "Your feelings are valid, and it's okay to not be okay sometimes. Let's think about one small thing that might bring a little comfort today. ✨",
    ],
    "neutral": [
        "It sounds like you're in a pretty steady place today. I'm curious - what's one thing that's been on your mind lately? 🤔",
        "Neutral days can be really valuable for reflection. Sometimes the most growth happens in these quieter moments. 🌿",
    ],
    "good": [
        "I love hearing that you're feeling good! What's been contributing to this uplifting feeling? ☀️",
        "It's wonderful to see you in such a great space! Keep nurturing whatever's working! 🌟",
    ],
    "excellent": [
        "Your energy is absolutely radiant today! This is exactly the kind of moment worth celebrating! 🎉",
        "You're glowing with positivity! What brought you to this amazing place? Let's remember this feeling! 🌈",
    ],
}

FOLLOW_UPS = {
    "low": [
        "What's one small thing that brought you even a tiny bit of comfort today?",
        "Is there someone in your life you feel safe talking to about this?",
        "What would you tell a good friend who was feeling exactly like you do right now?",
    ],
    "neutral": [
        "What's one thing you're looking forward to this week?",
        "How did you sleep last night?",
    ],
    "high": [
        "What made today feel so good?",
        "How could you bring a bit of today's energy into tomorrow?",
    ],
}

SYSTEM_PROMPTS = {
    "mood_entry": "The user just logged a mood of {mood_score}/10. Acknowledge how they feel and ask one gentle question.",
    "follow_up": "Continue the conversation about the user's mood ({mood_score}/10). Reflect what they said and offer one small, practical idea.",
    "general_chat": "Chat warmly and briefly with the user about their day.",
    "crisis_check": "Check in gently on the user's wellbeing. If they seem at risk, encourage them to contact a crisis line.",
}


def mood_band(mood_score: Optional[int]) -> str:
    score = mood_score or 5
    if score <= 2:
        return "crisis"
    if score <= 4:
        return "low"
    if score <= 6:
        return "neutral"
    if score <= 8:
        return "good"
    return "excellent"


def canned_reply(mood_score: Optional[int]) -> str:
    return random.choice(CANNED_REPLIES[mood_band(mood_score)])


def follow_up_questions(mood_score: Optional[int]) -> list:
    if mood_score is None:
        return []
    if mood_score <= 4:
        return list(FOLLOW_UPS["low"])
    if mood_score <= 6:
        return list(FOLLOW_UPS["neutral"])
    return list(FOLLOW_UPS["high"])


# 1. Define State
class CompanionState(TypedDict):
    message: str
    mood_score: Optional[int]
    conversation_type: str
    context: str
    crisis: bool
    reply: str
    tone: str


# 2. Define Nodes

def screen_node(state: CompanionState):
    """
    Screens the user's message for crisis language before any LLM call.
    """
    logger.info("--- SCREEN NODE ---")
    return {"crisis": detect_crisis(state.get("message") or "")}


def crisis_node(state: CompanionState):
    logger.info("--- CRISIS NODE ---")
    return {"reply": random.choice(CANNED_REPLIES["crisis"]), "tone": "crisis"}


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(
        (
            GoogleAPICallError,
            ServiceUnavailable,
            httpx.RequestError,
            asyncio.TimeoutError,
        )
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
)
async def _ask_companion(state: CompanionState) -> str:
    conversation_type = state["conversation_type"]
    companion_prompt = ChatPromptTemplate.from_messages(
        [
            (
                "system",
                "You are Moody, a warm and encouraging mood companion. Keep replies under 80 words. "
                "You are not a therapist and never give medical advice. "
                + SYSTEM_PROMPTS.get(conversation_type, SYSTEM_PROMPTS["general_chat"])
                + "\n\nRecent context: {context}",
            ),
            ("human", "{message}"),
        ]
    )
    chain = companion_prompt | get_llm() | StrOutputParser()
    safe_message = await deidentify_content(state.get("message") or "")
    return await chain.ainvoke({
        "message": safe_message or "(no message)",
        "mood_score": state.get("mood_score") or "unknown",
        "context": state.get("context") or "none",
    })


async def respond_node(state: CompanionState):
    """
    Generates the companion reply. Falls back to a canned reply for the mood band.
    """
    logger.info("--- RESPOND NODE ---")
    try:
        reply = (await _ask_companion(state)).strip()
        if reply:
            return {"reply": reply, "tone": mood_band(state.get("mood_score"))}
    except Exception:
        logger.error("Companion reply failed, using canned reply", exc_info=True)
    return {"reply": canned_reply(state.get("mood_score")), "tone": mood_band(state.get("mood_score"))}


# 3. Define Conditional Logic
def decide_route(state: CompanionState):
    return "crisis" if state.get("crisis") else "respond"


# 4. Build Graph
workflow = StateGraph(CompanionState)

workflow.add_node("screen", screen_node)
workflow.add_node("crisis", crisis_node)
workflow.add_node("respond", respond_node)

workflow.set_entry_point("screen")

workflow.add_conditional_edges(
    "screen", decide_route, {"crisis": "crisis", "respond": "respond"}
)

workflow.add_edge("crisis", END)
workflow.add_edge("respond", END)

# Compile
companion_app = workflow.compile()


# 5. Protected Invocation
async def protected_companion_invoke(message: Optional[str], mood_score: Optional[int],
                                     conversation_type: str, context: str = "") -> dict:
    """
    Runs the companion graph. Crisis screening sees the raw message; the LLM
    only ever sees the PII-masked version.
    """
    result = await companion_app.ainvoke({
        "message": message or "",
        "mood_score": mood_score,
        "conversation_type": conversation_type,
        "context": context,
        "crisis": False,
        "reply": "",
        "tone": "",
    })
    crisis = bool(result.get("crisis"))

    return {
        "message": result["reply"],
        "tone": result["tone"],
        "crisisDetected": crisis,
        "crisisResources": CRISIS_RESOURCES if crisis else None,
        "followUpQuestions": follow_up_questions(mood_score),
    }
