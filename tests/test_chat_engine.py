import asyncio
from types import SimpleNamespace

import pytest

from vu_assistant.engines.ai_engine_async import (
    FAILURE_API_ERROR,
    FAILURE_EMPTY_RESPONSE,
    FAILURE_NOT_CONFIGURED,
    AIResult,
    AsyncAIEngine,
    AsyncCircuitBreaker,
)
from vu_assistant.engines.chat_engine import (
    DEFAULT_KEYWORD_FALLBACK,
    GENERAL_HELP_MESSAGE,
    KEYWORD_FALLBACKS,
    SOURCE_AI,
    SOURCE_FALLBACK,
    SOURCE_KNOWLEDGE_BASE,
    WELCOME_MESSAGES,
    ChatResponder,
    generate_chat_title,
    keyword_fallback_reply,
    welcome_message,
)
from vu_assistant.engines.knowledge_base import KnowledgeScorer
from vu_assistant.engines.response_formatter import format_knowledge_answer


class StubAI:
    def __init__(self, result, configured=True):
        self.result = result
        self.is_configured = configured
        self.calls = []

    async def complete(self, user_message, conversation_history=None, knowledge=()):
        self.calls.append(
            {"message": user_message, "history": list(conversation_history or []), "knowledge": list(knowledge)}
        )
        return self.result


def fake_client(generate_content):
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))


@pytest.fixture
def scorer(catalog):
    return KnowledgeScorer(catalog)


class TestReplyPipeline:
    def test_message_without_letters_gets_general_help(self, scorer):
        ai = StubAI(AIResult.success("should not be used"))
        reply = asyncio.run(ChatResponder(scorer, ai).generate_reply("123 ?!"))
        assert reply.source == SOURCE_FALLBACK
        assert reply.content == GENERAL_HELP_MESSAGE
        assert reply.confidence == 0.5
        assert ai.calls == []

    def test_ai_success_is_returned(self, scorer):
        ai = StubAI(AIResult.success("VU is in Melbourne."))
        reply = asyncio.run(ChatResponder(scorer, ai).generate_reply("Where is Victoria University?"))
        assert reply.source == SOURCE_AI
        assert reply.content == "VU is in Melbourne."
        assert reply.confidence == 0.9
        assert ai.calls[0]["knowledge"] == scorer.search("Where is Victoria University?")

    def test_ai_failure_falls_back_to_top_match(self, scorer):
        query = "how can I contact Victoria University"
        ai = StubAI(AIResult.failure(FAILURE_API_ERROR))
        reply = asyncio.run(ChatResponder(scorer, ai).generate_reply(query))
        assert reply.source == SOURCE_KNOWLEDGE_BASE
        assert reply.confidence == 0.8
        assert reply.used_knowledge
        assert reply.content == format_knowledge_answer(scorer.search(query)[0].answer)

    def test_unconfigured_ai_is_skipped(self, scorer):
        ai = StubAI(AIResult.success("unused"), configured=False)
        reply = asyncio.run(ChatResponder(scorer, ai).generate_reply("campus locations"))
        assert reply.source == SOURCE_KNOWLEDGE_BASE
        assert ai.calls == []

    def test_no_match_gets_general_help(self, scorer):
        ai = StubAI(AIResult.failure(FAILURE_NOT_CONFIGURED))
        reply = asyncio.run(ChatResponder(scorer, ai).generate_reply("xyzzy plugh"))
        assert reply.source == SOURCE_FALLBACK
        assert reply.content == GENERAL_HELP_MESSAGE
        assert not reply.used_knowledge

    def test_regenerate_drops_trailing_assistant_turn(self, scorer):
        ai = StubAI(AIResult.success("fresh answer"))
        history = [
            {"role": "USER", "content": "old question"},
            {"role": "ASSISTANT", "content": "stale answer"},
        ]
        reply = asyncio.run(ChatResponder(scorer, ai).regenerate_reply("new question about fees", history))
        assert reply.content == "fresh answer"
        assert ai.calls[0]["history"] == history[:1]


class TestChatTitles:
    @pytest.mark.parametrize(
        "message, title",
        [
            ("What business courses are there?", "Business Programs Inquiry"),
            ("Tell me about education programs", "Education Programs Chat"),
            ("How do I apply?", "Admission Inquiry"),
            ("tuition fees", "Fees & Scholarships"),
            ("Tell me about the Sydney office", "VU Sydney Campus Inquiry"),
            ("Parking near Footscray", "Parking near Footscray"),
            ("Quantum entanglement explained simply today", "Quantum entanglement explai..."),
            ("", "VU Chat"),
        ],
    )
    def test_generate_chat_title(self, message, title):
        assert generate_chat_title(message) == title


def test_keyword_fallback_reply():
    assert keyword_fallback_reply("What does tuition cost?") == KEYWORD_FALLBACKS[2][1]
    assert keyword_fallback_reply("random words") == DEFAULT_KEYWORD_FALLBACK


def test_welcome_message_is_canned():
    assert welcome_message() in WELCOME_MESSAGES


class TestAIEngine:
    def test_unconfigured_engine_reports_failure(self):
        engine = AsyncAIEngine(api_key="")
        assert not engine.is_configured
        result = asyncio.run(engine.complete("hello"))
        assert not result.ok
        assert result.reason == FAILURE_NOT_CONFIGURED

    def test_successful_completion(self):
        async def generate_content(model, contents):
            assert "User: What fees apply?" in contents
            return SimpleNamespace(text="  Fees vary by course.  ")

        engine = AsyncAIEngine(api_key="test", client=fake_client(generate_content))
        result = asyncio.run(engine.complete("What fees apply?"))
        assert result == AIResult.success("Fees vary by course.")

    def test_empty_completion(self):
        async def generate_content(model, contents):
            return SimpleNamespace(text="")

        engine = AsyncAIEngine(api_key="test", client=fake_client(generate_content))
        assert asyncio.run(engine.complete("hi")).reason == FAILURE_EMPTY_RESPONSE

    def test_api_error_is_captured(self):
        async def generate_content(model, contents):
            raise RuntimeError("upstream exploded")

        engine = AsyncAIEngine(api_key="test", client=fake_client(generate_content))
        result = asyncio.run(engine.complete("hi"))
        assert not result.ok
        assert result.reason == FAILURE_API_ERROR
        assert engine.circuit_breaker.failure_count == 1

    def test_prompt_includes_knowledge_and_history(self, scorer):
        engine = AsyncAIEngine(api_key="")
        knowledge = scorer.search("campus locations")
        prompt = engine.build_prompt(
            "Where can I park?",
            [{"role": "USER", "content": "Hi"}, {"role": "ASSISTANT", "content": "Hello!"}],
            knowledge,
        )
        assert f"1. Q: {knowledge[0].question}" in prompt
        assert "User: Hi\nAssistant: Hello!" in prompt
        assert prompt.endswith("User: Where can I park?\nAssistant:")


def test_circuit_breaker_opens_after_threshold():
    async def scenario():
        breaker = AsyncCircuitBreaker(failure_threshold=2, recovery_timeout=60)
        await breaker.record_failure()
        assert await breaker.can_execute()
        await breaker.record_failure()
        assert not await breaker.can_execute()
        return breaker

    breaker = asyncio.run(scenario())
    assert breaker.state == AsyncCircuitBreaker.OPEN
    assert breaker.failure_count == 2
