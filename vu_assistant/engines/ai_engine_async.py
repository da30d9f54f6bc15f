import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from google import genai

from vu_assistant.config import Config
from vu_assistant.engines.knowledge_base import QUICK_FACTS, KnowledgeRecord
from vu_assistant.utils.logging_utils import get_logger

logger = get_logger()

# ============================================================
# ASYNC RESILIENCE CONFIGURATION
# ============================================================

MAX_RETRIES = Config.AI_MAX_RETRIES
BASE_DELAY = Config.AI_BASE_DELAY

CIRCUIT_FAILURE_THRESHOLD = Config.AI_CIRCUIT_FAILURE_THRESHOLD
CIRCUIT_RECOVERY_TIMEOUT = Config.AI_CIRCUIT_RECOVERY_TIMEOUT
CIRCUIT_HALF_OPEN_MAX_CALLS = 3

RATE_LIMIT_RPM = Config.AI_RATE_LIMIT_RPM
RATE_LIMIT_TOKENS = max(30, RATE_LIMIT_RPM)
RATE_LIMIT_REFILL_RATE = max(RATE_LIMIT_RPM / 60.0, 0.1)

FAILURE_NOT_CONFIGURED = "not_configured"
FAILURE_CIRCUIT_OPEN = "circuit_open"
FAILURE_RATE_LIMITED = "rate_limited"
FAILURE_EMPTY_RESPONSE = "empty_response"
FAILURE_API_ERROR = "api_error"


@dataclass(frozen=True)
class AIResult:
    """Outcome of one completion attempt: either content or a failure reason."""

    ok: bool
    content: str = ""
    reason: Optional[str] = None

    @classmethod
    def success(cls, content: str) -> "AIResult":
        return cls(ok=True, content=content)

    @classmethod
    def failure(cls, reason: str) -> "AIResult":
        return cls(ok=False, reason=reason)


class AsyncCircuitBreaker:
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    def __init__(
        self,
        failure_threshold: int = CIRCUIT_FAILURE_THRESHOLD,
        recovery_timeout: int = CIRCUIT_RECOVERY_TIMEOUT,
    ):
        self.state = self.CLOSED
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time = None
        self.half_open_calls = 0
        self._lock = asyncio.Lock()

    async def can_execute(self) -> bool:
        async with self._lock:
            if self.state == self.CLOSED:
                return True
            elif self.state == self.OPEN:
                if self.last_failure_time and \
                   datetime.now() - self.last_failure_time > timedelta(seconds=self.recovery_timeout):
                    self.state = self.HALF_OPEN
                    self.half_open_calls = 0
                    return True
                return False
            else:  # HALF_OPEN
                if self.half_open_calls < CIRCUIT_HALF_OPEN_MAX_CALLS:
                    self.half_open_calls += 1
                    return True
                return False

    async def record_success(self):
        async with self._lock:
            self.state = self.CLOSED
            self.failure_count = 0

    async def record_failure(self):
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = datetime.now()
            if self.state == self.HALF_OPEN:
                self.state = self.OPEN
            elif self.failure_count >= self.failure_threshold:
                self.state = self.OPEN


class AsyncTokenBucketRateLimiter:
    def __init__(self, capacity: int = RATE_LIMIT_TOKENS, refill_rate: float = RATE_LIMIT_REFILL_RATE):
        self.capacity = capacity
        self.tokens = capacity
        self.refill_rate = refill_rate
        self.last_refill = time.time()
        self._lock = asyncio.Lock()

    async def acquire(self, timeout=10.0) -> bool:
        start_time = time.time()
        while time.time() - start_time < timeout:
            async with self._lock:
                now = time.time()
                elapsed = now - self.last_refill
                self.tokens = min(self.capacity, self.tokens + (elapsed * self.refill_rate))
                self.last_refill = now

                if self.tokens >= 1:
                    self.tokens -= 1
                    return True
            await asyncio.sleep(0.1)
        return False


def build_system_prompt() -> str:
    facts = "\n".join(f"- {fact}" for fact in QUICK_FACTS)
    return f"""You are the Victoria University (VU) Assistant, an AI-powered chatbot designed to help students, prospective students, and anyone interested in Victoria University Australia.

Your primary role is to provide helpful, accurate, and friendly information about:
- Course information and programs
- Admission requirements and application processes
- Student services and support (especially VUHQ)
- Campus facilities and student life
- Fees, scholarships, and financial information
- The VU Block Model® and teaching methods
- VU Sydney campus information
- Contact details and campus addresses

IMPORTANT CONTACT INFORMATION:
- Main VU Phone: +61 3 9919 6100
- VU Sydney Phone: +61 2 8265 3222
- Emergency/Security: +61 3 9919 6666 (24/7)
- VU Sydney Address: Ground Floor, 160-166 Sussex Street, Sydney NSW 2000
- VUHQ: Student service centres - first point of contact for all assistance

Guidelines for responses:
1. Be friendly, helpful, and professional
2. Provide specific, accurate contact information when asked
3. Always mention VUHQ as the primary support service
4. Include relevant phone numbers and addresses when helpful
5. For fees, remind users rates may change and to verify current information
6. Keep responses focused on Victoria University Australia only
7. Use clear, accessible language suitable for international students
8. When discussing specific requirements, guide users to contact VU directly for verification

Quick Facts Reference:
{facts}

If asked about topics outside VU's scope, politely redirect to university-related matters."""


class AsyncAIEngine:
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None, client: Any = None):
        self.model_name = (model_name or Config.GEMINI_MODEL).replace("models/", "")
        self.api_key = Config.GEMINI_API_KEY if api_key is None else api_key
        self.client = client
        self.circuit_breaker = AsyncCircuitBreaker()
        self.rate_limiter = AsyncTokenBucketRateLimiter()

        if self.client is None and self.api_key:
            try:
                self.client = genai.Client(api_key=self.api_key, http_options={'api_version': 'v1beta'})
                logger.info(f"[AsyncAI] Initialized with model: {self.model_name}")
            except Exception as e:
                logger.error(f"[AsyncAI] Gemini init failed: {e}")
                self.client = None
        elif self.client is None:
            logger.info("[AsyncAI] No GEMINI_API_KEY set; replies will come from the knowledge base.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _format_conversation_text(
        self,
        conversation_history: Optional[Sequence[Dict[str, Any]]],
        limit: int = Config.AI_HISTORY_TURNS,
    ) -> str:
        if not conversation_history:
            return ""
        lines: List[str] = []
        for item in list(conversation_history)[-max(1, int(limit)):]:
            content = str(item.get("content") or "").strip()
            if not content:
                continue
            role = str(item.get("role") or "").strip().lower()
            speaker = "User" if role == "user" else "Assistant"
            lines.append(f"{speaker}: {content}")
        return "\n".join(lines)

    def build_prompt(
        self,
        user_message: str,
        conversation_history: Optional[Sequence[Dict[str, Any]]] = None,
        knowledge: Sequence[KnowledgeRecord] = (),
    ) -> str:
        prompt = build_system_prompt()

        if knowledge:
            prompt += "\n\nRelevant VU information for this query:\n"
            for index, record in enumerate(knowledge, start=1):
                prompt += f"\n{index}. Q: {record.question}\nA: {record.answer}\n"
            prompt += "\nUse this information to provide accurate, specific answers about Victoria University."

        conversation_text = self._format_conversation_text(conversation_history)
        if conversation_text:
            prompt += f"\n\nRecent conversation history:\n{conversation_text}"

        prompt += f"\n\nUser: {user_message}\nAssistant:"
        return prompt

    async def complete(
        self,
        user_message: str,
        conversation_history: Optional[Sequence[Dict[str, Any]]] = None,
        knowledge: Sequence[KnowledgeRecord] = (),
    ) -> AIResult:
        if not self.client:
            return AIResult.failure(FAILURE_NOT_CONFIGURED)

        prompt = self.build_prompt(user_message, conversation_history, knowledge)

        # Resilience Checks
        if not await self.circuit_breaker.can_execute():
            return AIResult.failure(FAILURE_CIRCUIT_OPEN)
        if not await self.rate_limiter.acquire(timeout=10.0):
            return AIResult.failure(FAILURE_RATE_LIMITED)

        for attempt in range(MAX_RETRIES):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=prompt,
                )
            except Exception as e:
                if "resource_exhausted" in str(e).lower() and attempt < MAX_RETRIES - 1:
                    await asyncio.sleep(BASE_DELAY * (2 ** attempt))
                    continue
                await self.circuit_breaker.record_failure()
                logger.error(f"[AsyncAI] Completion failed: {e}")
                return AIResult.failure(FAILURE_API_ERROR)

            await self.circuit_breaker.record_success()
            text = str(getattr(response, "text", "") or "").strip()
            if not text:
                return AIResult.failure(FAILURE_EMPTY_RESPONSE)
            return AIResult.success(text)

        return AIResult.failure(FAILURE_API_ERROR)


# Singleton
ai_engine_async = AsyncAIEngine()
