import itertools
import os
import re
import uuid
from datetime import datetime, timezone

import pytest

os.environ["JWT_SECRET"] = "test-secret-key-for-vu-assistant-suite-0123456789"
os.environ["APP_ENV"] = "development"
os.environ["EMAIL_ENVIRONMENT"] = "development"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("GOOGLE_API_KEY", None)
os.environ.pop("MONGO_URI", None)

from fastapi.testclient import TestClient  # noqa: E402

from main import create_app  # noqa: E402
from vu_assistant.api.dependencies import get_db, get_mailer, get_responder  # noqa: E402
from vu_assistant.config import Config  # noqa: E402
from vu_assistant.engines.ai_engine_async import AsyncAIEngine  # noqa: E402
from vu_assistant.engines.chat_engine import ChatResponder  # noqa: E402
from vu_assistant.engines.db_engine_async import ROLE_USER  # noqa: E402
from vu_assistant.engines.knowledge_base import KnowledgeScorer, load_catalog  # noqa: E402
from vu_assistant.utils.auth_utils import hash_password  # noqa: E402

TEST_PASSWORD = "Secret123"

_CHAT_KEYS = ("id", "name", "createdAt", "updatedAt")
_MESSAGE_KEYS = ("id", "chatId", "content", "role", "createdAt", "updatedAt")


def _now():
    return datetime.now(timezone.utc)


def _pick(doc, keys):
    return {key: doc[key] for key in keys}


class FakeDatabase:
    """In-memory stand-in for AsyncDatabaseEngine."""

    def __init__(self):
        self.users = {}
        self.sessions = []
        self.tokens = []
        self.chats = {}
        self.messages = []
        self._clock = itertools.count()

    @property
    def is_connected(self):
        return True

    # Users
    async def create_user(self, email, full_name, password_hash, verified=False):
        now = _now()
        user = {
            "id": str(uuid.uuid4()),
            "email": email.lower(),
            "fullName": full_name,
            "displayName": None,
            "password": password_hash,
            "verified": verified,
            "theme": Config.DEFAULT_THEME,
            "createdAt": now,
            "updatedAt": now,
        }
        self.users[user["id"]] = user
        return dict(user)

    async def find_user_by_email(self, email):
        for user in self.users.values():
            if user["email"].lower() == str(email or "").strip().lower():
                return dict(user)
        return None

    async def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    async def update_user(self, user_id, fields):
        self.users[user_id].update(fields, updatedAt=_now())
        return dict(self.users[user_id])

    async def delete_user(self, user_id):
        return self.users.pop(user_id, None) is not None

    # Sessions
    async def create_session(self, user_id, token, expires_at):
        self.sessions.append({"userId": user_id, "token": token, "expiresAt": expires_at})

    async def delete_session(self, token):
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s["token"] != token]
        return before - len(self.sessions)

    async def delete_user_sessions(self, user_id):
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s["userId"] != user_id]
        return before - len(self.sessions)

    # Verification tokens
    async def create_verification_token(self, email, token, token_type, expires_at, user_id=None):
        record = {
            "email": email,
            "token": token,
            "type": token_type,
            "expiresAt": expires_at,
            "userId": user_id,
            "createdAt": _now(),
        }
        self.tokens.append(record)
        return dict(record)

    async def find_verification_token(self, token, token_type):
        for record in self.tokens:
            if record["token"] == token and record["type"] == token_type:
                return dict(record)
        return None

    async def delete_verification_token(self, token):
        self.tokens = [t for t in self.tokens if t["token"] != token]

    async def delete_tokens_for_email(self, email, token_type=None):
        before = len(self.tokens)
        self.tokens = [
            t for t in self.tokens
            if not (t["email"] == email and (token_type is None or t["type"] == token_type))
        ]
        return before - len(self.tokens)

    # Chats
    async def list_chats(self, user_id):
        owned = [c for c in self.chats.values() if c["userId"] == user_id]
        owned.sort(key=lambda c: c["_tick"], reverse=True)
        return [_pick(c, _CHAT_KEYS) for c in owned]

    async def create_chat(self, user_id, name):
        now = _now()
        chat = {
            "id": str(uuid.uuid4()),
            "userId": user_id,
            "name": name,
            "createdAt": now,
            "updatedAt": now,
            "_tick": next(self._clock),
        }
        self.chats[chat["id"]] = chat
        return _pick(chat, _CHAT_KEYS)

    async def get_chat(self, chat_id, user_id):
        chat = self.chats.get(chat_id)
        if not chat or chat["userId"] != user_id:
            return None
        return _pick(chat, _CHAT_KEYS)

    async def rename_chat(self, chat_id, name):
        self.chats[chat_id]["name"] = name
        await self.touch_chat(chat_id)
        return _pick(self.chats[chat_id], _CHAT_KEYS)

    async def touch_chat(self, chat_id):
        self.chats[chat_id].update(updatedAt=_now(), _tick=next(self._clock))

    async def delete_chat(self, chat_id):
        self.messages = [m for m in self.messages if m["chatId"] != chat_id]
        self.chats.pop(chat_id, None)

    async def delete_user_chats(self, user_id):
        chat_ids = {c["id"] for c in self.chats.values() if c["userId"] == user_id}
        self.messages = [m for m in self.messages if m["chatId"] not in chat_ids]
        for chat_id in chat_ids:
            del self.chats[chat_id]
        return len(chat_ids)

    # Messages
    async def list_messages(self, chat_id):
        return [_pick(m, _MESSAGE_KEYS) for m in self.messages if m["chatId"] == chat_id]

    async def recent_messages(self, chat_id, limit):
        return (await self.list_messages(chat_id))[-limit:]

    async def add_message(self, chat_id, content, role):
        now = _now()
        message = {
            "id": str(uuid.uuid4()),
            "chatId": chat_id,
            "content": content,
            "role": role,
            "createdAt": now,
            "updatedAt": now,
        }
        self.messages.append(message)
        return dict(message)

    async def get_message(self, chat_id, message_id):
        for message in self.messages:
            if message["id"] == message_id and message["chatId"] == chat_id:
                return dict(message)
        return None

    async def update_message_content(self, message_id, content):
        for message in self.messages:
            if message["id"] == message_id:
                message.update(content=content, updatedAt=_now())
                return dict(message)
        return None

    async def delete_message(self, message_id):
        self.messages = [m for m in self.messages if m["id"] != message_id]

    async def count_user_messages(self, chat_id):
        return sum(1 for m in self.messages if m["chatId"] == chat_id and m["role"] == ROLE_USER)

    async def search_messages(self, user_id, term, limit):
        names = {c["id"]: c["name"] for c in self.chats.values() if c["userId"] == user_id}
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        rows = [
            dict(_pick(m, _MESSAGE_KEYS), chatName=names[m["chatId"]])
            for m in reversed(self.messages)
            if m["chatId"] in names and pattern.search(m["content"])
        ]
        return rows[:limit]


class FakeMailer:
    def __init__(self):
        self.outbox = []
        self.is_production = False

    async def send(self, to, subject, html):
        self.outbox.append({"to": to, "subject": subject, "html": html})
        return {"success": True, "data": {"id": f"test-email-{len(self.outbox)}"}}


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture(scope="session")
def catalog():
    return load_catalog(Config.KNOWLEDGE_BASE_PATH)


@pytest.fixture
def responder(catalog):
    return ChatResponder(KnowledgeScorer(catalog), AsyncAIEngine(api_key=""))


@pytest.fixture
def client(fake_db, mailer, responder):
    app = create_app()
    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_responder] = lambda: responder
    # No context manager: the lifespan would try to reach MongoDB
    return TestClient(app)


@pytest.fixture
def verified_user(fake_db):
    user = {
        "id": str(uuid.uuid4()),
        "email": "student@vu.edu.au",
        "fullName": "Sam Student",
        "displayName": None,
        "password": hash_password(TEST_PASSWORD),
        "verified": True,
        "theme": Config.DEFAULT_THEME,
        "createdAt": _now(),
        "updatedAt": _now(),
    }
    fake_db.users[user["id"]] = user
    return user


@pytest.fixture
def auth_client(client, verified_user):
    response = client.post(
        "/api/auth/login",
        json={"email": verified_user["email"], "password": TEST_PASSWORD},
    )
    assert response.status_code == 200
    return client
