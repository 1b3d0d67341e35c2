import re
import asyncio
import logging
from functools import lru_cache
from google.cloud import dlp_v2
from config import settings

logger = logging.getLogger(__name__)

# --- Crisis Detection ---

CRISIS_INDICATORS = {
    "immediate": [
        "suicide", "kill myself", "end it all", "not worth living",
        "better off dead", "want to die", "harm myself", "cut myself",
    ],
    "concerning": [
        "hopeless", "worthless", "give up", "nothing matters",
        "empty inside", "numb", "can't go on", "too much pain",
    ],
    "warning": [
        "alone", "isolated", "nobody cares", "waste of space",
        "burden", "pointless", "trapped", "desperate",
    ],
}

CRISIS_RESOURCES = {
    "title": "You don't have to go through this alone 💜",
    "message": "I'm really concerned about you right now. Please consider reaching out to someone who can provide immediate support:",
    "resources": [
        {"name": "Crisis Text Line", "contact": "Text HOME to 741741", "description": "24/7 support via text message"},
        {"name": "988 Suicide & Crisis Lifeline", "contact": "988", "description": "24/7 phone support"},
        {"name": "Emergency Services", "contact": "911", "description": "For immediate emergency assistance"},
    ],
}


class CrisisDetector:
    """Phrase matcher for messages that need crisis resources instead of an LLM reply."""
    def __init__(self, indicators: dict = None):
        indicators = indicators or CRISIS_INDICATORS
        self.patterns = {
            level: [re.compile(re.escape(phrase), re.IGNORECASE) for phrase in phrases]
            for level, phrases in indicators.items()
        }

    def _count(self, level: str, text: str) -> int:
        return sum(1 for pattern in self.patterns[level] if pattern.search(text))

    def is_crisis(self, text: str) -> bool:
        if not text:
            return False
        if self._count("immediate", text):
            logger.warning("Crisis indicator matched (immediate)")
            return True
        concerning = self._count("concerning", text)
        warning = self._count("warning", text)
        if concerning >= 2 or (concerning >= 1 and warning >= 2):
            logger.warning("Crisis indicator matched (combined)")
            return True
        return False


detector = CrisisDetector()


def detect_crisis(text: str) -> bool:
    return detector.is_crisis(text)

# --- PII Masking ---

PII_PATTERNS = {
    "EMAIL_ADDRESS": r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+",
    "PHONE_NUMBER": r"(\+\d{1,2}\s?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}",
    "CREDIT_CARD_NUMBER": r"\b(?:\d[ -]*?){13,16}\b",
}


def has_potential_pii(content: str) -> bool:
    for pattern in PII_PATTERNS.values():
        if re.search(pattern, content):
            return True
    return False


def mask_pii(content: str) -> str:
    # Card numbers first so the phone pattern does not eat them
    for info_type in ("CREDIT_CARD_NUMBER", "EMAIL_ADDRESS", "PHONE_NUMBER"):
        content = re.sub(PII_PATTERNS[info_type], f"[{info_type}]", content)
    return content


@lru_cache(maxsize=1)
def get_dlp_client():
    return dlp_v2.DlpServiceClient()


def _dlp_request(content: str, project_id: str):
    parent = f"projects/{project_id}"
    info_types = [{"name": name} for name in PII_PATTERNS]
    inspect_config = {"info_types": info_types}
    deidentify_config = {
        "info_type_transformations": {
            "transformations": [
                {"primitive_transformation": {"replace_with_info_type_config": {}}}
            ]
        }
    }

    response = get_dlp_client().deidentify_content(
        request={
            "parent": parent,
            "deidentify_config": deidentify_config,
            "inspect_config": inspect_config,
            "item": {"value": content},
        }
    )
    return response.item.value


async def deidentify_content(content: str, project_id: str = None):
    """Masks PII before text is sent to the LLM provider."""
    if not content:
        return ""
    if not has_potential_pii(content):
        return content
    project_id = project_id if project_id is not None else settings.PROJECT_ID
    if not project_id:
        return mask_pii(content)
    try:
        return await asyncio.to_thread(_dlp_request, content, project_id)
    except Exception:
        logger.error("DLP de-identification failed", exc_info=True)
        return "[PROTECTED CONTENT]"
