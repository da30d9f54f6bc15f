"""
Chat Engine for the VU Assistant

Reply pipeline:
1. Messages without any letters get the general help reply
2. Rank knowledge-base matches once per message
3. Ask the LLM (when configured) grounded on those matches
4. On any AI failure, answer with the best knowledge-base record
5. With no match at all, answer with the general help reply
"""
import random
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from vu_assistant.config import Config
from vu_assistant.engines.ai_engine_async import AsyncAIEngine, ai_engine_async
from vu_assistant.engines.knowledge_base import KnowledgeScorer, load_catalog
from vu_assistant.engines.response_formatter import format_knowledge_answer
from vu_assistant.utils.logging_utils import get_logger

logger = get_logger()

SOURCE_AI = "ai"
SOURCE_KNOWLEDGE_BASE = "knowledge_base"
SOURCE_FALLBACK = "fallback"

_ALPHA_RE = re.compile(r"[A-Za-z]")


# =============================================================================
# CANNED MESSAGES
# =============================================================================

WELCOME_MESSAGES = [
    "Hello! I'm your Victoria University Assistant. I'm here to help you with questions about courses, enrollment, campus facilities, and more. How can I assist you today?",
    "Welcome to VU Assistant! I can help you learn about Victoria University's programs, admissions, student services, and campus life. What would you like to know?",
    "Hi there! I'm here to provide information about Victoria University - from course details and the VU Block Model® to student support services and campus facilities. How can I help?",
    "Howdy! I'm your AI guide to Victoria University. Whether you're interested in undergraduate programs, postgraduate degrees, or student life, I'm here to help. What can I tell you about VU?",
]

GENERAL_HELP_MESSAGE = """Hello! I'm your Victoria University Assistant. I'm here to help you with information about:

**Courses & Programs**
- Undergraduate and postgraduate degrees
- VU Block Model® learning approach (study one subject at a time)
- Course requirements and pathways

**Admissions & Applications**
- Application processes and requirements
- Entry pathways and eligibility criteria
- Important deadlines and dates
- **Application fee:** AUD $75 (international students)

**Student Life & Support**
- **VUHQ:** Your first point of contact for all assistance
- Campus facilities and services
- Student support and wellbeing services

**Campus Information**
- **VU Sydney:** Ground Floor, 160-166 Sussex Street, Sydney NSW 2000
- **Melbourne:** Multiple campuses including City Tower and Footscray Park

**Contact Information**
- **Main Phone:** +61 3 9919 6100
- **VU Sydney:** +61 2 8265 3222
- **Emergency/Security:** +61 3 9919 6666 (24/7)
- **Website:** vu.edu.au

What specific information about Victoria University would you like to know?"""

KEYWORD_FALLBACKS = [
    (
        ("course", "program", "subject"),
        "Victoria University offers a wide range of undergraduate and postgraduate programs across various fields including Business, Information Technology, and Early Childhood Education. For specific course information and requirements, I recommend contacting VUHQ (VU Help Centre) or visiting the official VU website at vu.edu.au. How can I help you with course information?",
    ),
    (
        ("admission", "apply", "enrol"),
        "To apply to Victoria University, you can submit applications through VTAC (for domestic students) or directly through the VU Admissions Centre (for international students). Admission requirements vary by program, but generally include academic qualifications and English proficiency. For personalized admission advice, please contact VUHQ or visit vu.edu.au/admissions. What specific program are you interested in?",
    ),
    (
        ("fee", "cost", "tuition"),
        "Victoria University fees vary depending on your program and student status. Scholarships and financial support options are available. For current fee information and payment options, please contact VUHQ or visit the VU website. Would you like information about scholarships?",
    ),
    (
        ("sydney", "campus"),
        "VU Sydney is Victoria University's international campus located in the heart of Sydney. It offers the same high-quality education as our Melbourne campus using the innovative VU Block Model®. For more information about VU Sydney, please contact our student services team or visit vu.edu.au/vu-sydney.",
    ),
    (
        ("support", "help", "vuhq"),
        "Victoria University provides comprehensive student support through VUHQ (VU Help Centre), your first point of contact for assistance. VUHQ can help with enrollment, course advice, fees, and connecting you with specialized support services. How can I connect you with the right support?",
    ),
    (
        ("block model", "teaching"),
        "The VU Block Model® is Victoria University's award-winning approach to learning where you study one subject at a time over 4-week blocks (undergraduate) or two subjects over 8-week blocks (postgraduate). Would you like to know more about how this affects your studies?",
    ),
]

DEFAULT_KEYWORD_FALLBACK = (
    "Thank you for your question about Victoria University! I'm here to help with information about our courses, admissions, student services, campus facilities, and more. For specific or detailed inquiries, I recommend contacting VUHQ (VU Help Centre). You can also visit vu.edu.au for comprehensive information. What specific aspect of Victoria University would you like to know more about?"
)


def welcome_message() -> str:
    return random.choice(WELCOME_MESSAGES)


def keyword_fallback_reply(user_message: str) -> str:
    """Canned answer for when the reply pipeline itself is unavailable."""
    message = str(user_message or "").lower()
    for terms, reply in KEYWORD_FALLBACKS:
        if any(term in message for term in terms):
            return reply
    return DEFAULT_KEYWORD_FALLBACK


def generate_chat_title(first_message: str) -> str:
    message = str(first_message or "").lower().strip()

    if "course" in message or "program" in message or "degree" in message:
        if "business" in message:
            return "Business Programs Inquiry"
        if "it" in message or "information technology" in message:
            return "IT Courses Discussion"
        if "education" in message or "teaching" in message:
            return "Education Programs Chat"
        return "Course Information Chat"

    if "apply" in message or "admission" in message or "enrol" in message:
        return "Admission Inquiry"

    if any(term in message for term in ("fee", "cost", "tuition", "scholarship")):
        return "Fees & Scholarships"

    if "sydney" in message:
        return "VU Sydney Campus Inquiry"

    if "campus" in message or "facility" in message or "library" in message:
        return "Campus Facilities Chat"

    if "support" in message or "help" in message or "service" in message:
        return "Student Support Inquiry"

    if "block model" in message or "block" in message:
        return "VU Block Model Discussion"

    if "hello" in message or "hi" in message or "hey" in message:
        return "General VU Inquiry"

    words = " ".join(str(first_message or "").split(" ")[:4])
    if len(words) > 30:
        return words[:27] + "..."
    return words or "VU Chat"


@dataclass(frozen=True)
class AssistantReply:
    content: str
    source: str
    confidence: float
    used_knowledge: bool


class ChatResponder:
    """Produces assistant replies from the LLM with knowledge-base fallback."""

    def __init__(self, scorer: KnowledgeScorer, ai_engine: AsyncAIEngine):
        self.scorer = scorer
        self.ai_engine = ai_engine

    def general_help_reply(self) -> AssistantReply:
        return AssistantReply(
            content=GENERAL_HELP_MESSAGE,
            source=SOURCE_FALLBACK,
            confidence=0.5,
            used_knowledge=False,
        )

    async def generate_reply(
        self,
        user_message: str,
        chat_history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AssistantReply:
        message = str(user_message or "").strip()
        if not _ALPHA_RE.search(message):
            return self.general_help_reply()

        matches = self.scorer.search(message)

        if self.ai_engine.is_configured:
            result = await self.ai_engine.complete(message, chat_history or [], matches)
            if result.ok:
                return AssistantReply(
                    content=result.content,
                    source=SOURCE_AI,
                    confidence=0.9,
                    used_knowledge=True,
                )
            logger.warning(f"[ChatEngine] AI reply unavailable ({result.reason}); using knowledge base")

        if matches:
            return AssistantReply(
                content=format_knowledge_answer(matches[0].answer),
                source=SOURCE_KNOWLEDGE_BASE,
                confidence=0.8,
                used_knowledge=True,
            )

        return self.general_help_reply()

    async def regenerate_reply(
        self,
        new_user_message: str,
        chat_history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AssistantReply:
        """Fresh reply for an edited message, ignoring the stale assistant turn."""
        history: List[Dict[str, Any]] = list(chat_history or [])
        if history and str(history[-1].get("role") or "").lower() == "assistant":
            history = history[:-1]
        logger.info("[ChatEngine] Regenerating reply for edited message")
        return await self.generate_reply(new_user_message, history)


_default_responder: Optional[ChatResponder] = None


def get_default_responder() -> ChatResponder:
    """Build the process-wide responder on first use."""
    global _default_responder
    if _default_responder is None:
        catalog = load_catalog(Config.KNOWLEDGE_BASE_PATH)
        _default_responder = ChatResponder(
            KnowledgeScorer(catalog, limit=Config.KNOWLEDGE_MATCH_LIMIT),
            ai_engine_async,
        )
    return _default_responder
