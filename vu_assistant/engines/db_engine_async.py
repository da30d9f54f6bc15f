import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING

from vu_assistant.config import Config
from vu_assistant.utils.logging_utils import get_logger

logger = get_logger()

USERS_COLLECTION = "users"
SESSIONS_COLLECTION = "sessions"
TOKENS_COLLECTION = "verification_tokens"
CHATS_COLLECTION = "chats"
MESSAGES_COLLECTION = "messages"

ROLE_USER = "USER"
ROLE_ASSISTANT = "ASSISTANT"

TOKEN_EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
TOKEN_PASSWORD_RESET = "PASSWORD_RESET"
TOKEN_EMAIL_CHANGE = "EMAIL_CHANGE"

_CHAT_FIELDS = {"_id": 0, "id": 1, "name": 1, "createdAt": 1, "updatedAt": 1}
_MESSAGE_FIELDS = {"_id": 0, "id": 1, "chatId": 1, "content": 1, "role": 1, "createdAt": 1, "updatedAt": 1}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _clean(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


class AsyncDatabaseEngine:
    def __init__(self):
        self.client = None
        self.db = None

    async def connect(self):
        """Establish connection to MongoDB"""
        uri = Config.MONGO_URI
        if not uri:
            logger.error("[AsyncDB] MONGO_URI not found in .env")
            return

        try:
            self.client = motor.motor_asyncio.AsyncIOMotorClient(uri, serverSelectionTimeoutMS=5000)

            # Verify connection
            await self.client.admin.command('ping')
            self.db = self.client[Config.MONGO_DB_NAME]
            logger.info(f"[AsyncDB] Successfully connected to MongoDB: {Config.MONGO_DB_NAME}")

            await self._ensure_runtime_indexes()
        except Exception as e:
            logger.error(f"[AsyncDB] Database connection failed: {e}")
            self.db = None

    async def close(self):
        if self.client is not None:
            self.client.close()
        self.client = None
        self.db = None

    @property
    def is_connected(self) -> bool:
        return self.db is not None

    async def _ensure_runtime_indexes(self) -> None:
        """Create frequently used indexes for stable runtime latency."""
        if self.db is None:
            return
        try:
            await self.db[USERS_COLLECTION].create_index([("id", ASCENDING)], unique=True, name="users_id")
            await self.db[USERS_COLLECTION].create_index([("email", ASCENDING)], unique=True, name="users_email")
            await self.db[SESSIONS_COLLECTION].create_index([("token", ASCENDING)], name="sessions_token")
            await self.db[SESSIONS_COLLECTION].create_index(
                [("expiresAt", ASCENDING)], expireAfterSeconds=0, name="sessions_ttl"
            )
            await self.db[TOKENS_COLLECTION].create_index(
                [("token", ASCENDING), ("type", ASCENDING)], name="tokens_token_type"
            )
            await self.db[CHATS_COLLECTION].create_index(
                [("userId", ASCENDING), ("updatedAt", DESCENDING)], name="chats_user_updated"
            )
            await self.db[MESSAGES_COLLECTION].create_index(
                [("chatId", ASCENDING), ("createdAt", ASCENDING)], name="messages_chat_created"
            )
        except Exception as e:
            logger.warning(f"[AsyncDB] Index ensure error: {e}")

    def _require_db(self):
        if self.db is None:
            raise RuntimeError("Database is not connected")
        return self.db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, email: str, full_name: str, password_hash: str, verified: bool = False) -> Dict:
        db = self._require_db()
        now = _now()
        user = {
            "id": _new_id(),
            "email": email,
            "fullName": full_name,
            "displayName": None,
            "password": password_hash,
            "verified": verified,
            "theme": Config.DEFAULT_THEME,
            "createdAt": now,
            "updatedAt": now,
        }
        await db[USERS_COLLECTION].insert_one(dict(user))
        return user

    async def find_user_by_email(self, email: str) -> Optional[Dict]:
        db = self._require_db()
        escaped = re.escape(str(email or "").strip())
        if not escaped:
            return None
        doc = await db[USERS_COLLECTION].find_one(
            {"email": {"$regex": f"^{escaped}$", "$options": "i"}}
        )
        return _clean(doc)

    async def get_user_by_id(self, user_id: str) -> Optional[Dict]:
        db = self._require_db()
        return _clean(await db[USERS_COLLECTION].find_one({"id": user_id}))

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict]:
        db = self._require_db()
        updates = dict(fields)
        updates["updatedAt"] = _now()
        await db[USERS_COLLECTION].update_one({"id": user_id}, {"$set": updates})
        return await self.get_user_by_id(user_id)

    async def delete_user(self, user_id: str) -> bool:
        db = self._require_db()
        result = await db[USERS_COLLECTION].delete_one({"id": user_id})
        return result.deleted_count > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, user_id: str, token: str, expires_at: datetime) -> None:
        db = self._require_db()
        await db[SESSIONS_COLLECTION].insert_one({
            "id": _new_id(),
            "userId": user_id,
            "token": token,
            "expiresAt": expires_at,
            "createdAt": _now(),
        })

    async def delete_session(self, token: str) -> int:
        db = self._require_db()
        result = await db[SESSIONS_COLLECTION].delete_many({"token": token})
        return result.deleted_count

    async def delete_user_sessions(self, user_id: str) -> int:
        db = self._require_db()
        result = await db[SESSIONS_COLLECTION].delete_many({"userId": user_id})
        return result.deleted_count

    # ------------------------------------------------------------------
    # Verification tokens
    # ------------------------------------------------------------------

    async def create_verification_token(
        self,
        email: str,
        token: str,
        token_type: str,
        expires_at: datetime,
        user_id: Optional[str] = None,
    ) -> Dict:
        db = self._require_db()
        doc = {
            "id": _new_id(),
            "email": email,
            "token": token,
            "type": token_type,
            "expiresAt": expires_at,
            "userId": user_id,
            "createdAt": _now(),
        }
        await db[TOKENS_COLLECTION].insert_one(dict(doc))
        return doc

    async def find_verification_token(self, token: str, token_type: str) -> Optional[Dict]:
        db = self._require_db()
        return _clean(await db[TOKENS_COLLECTION].find_one({"token": token, "type": token_type}))

    async def delete_verification_token(self, token: str) -> None:
        db = self._require_db()
        await db[TOKENS_COLLECTION].delete_many({"token": token})

    async def delete_tokens_for_email(self, email: str, token_type: Optional[str] = None) -> int:
        db = self._require_db()
        query: Dict[str, Any] = {"email": email}
        if token_type:
            query["type"] = token_type
        result = await db[TOKENS_COLLECTION].delete_many(query)
        return result.deleted_count

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    async def list_chats(self, user_id: str) -> List[Dict]:
        db = self._require_db()
        cursor = db[CHATS_COLLECTION].find({"userId": user_id}, _CHAT_FIELDS).sort("updatedAt", DESCENDING)
        return await cursor.to_list(length=None)

    async def create_chat(self, user_id: str, name: str) -> Dict:
        db = self._require_db()
        now = _now()
        chat = {"id": _new_id(), "userId": user_id, "name": name, "createdAt": now, "updatedAt": now}
        await db[CHATS_COLLECTION].insert_one(dict(chat))
        return {key: chat[key] for key in ("id", "name", "createdAt", "updatedAt")}

    async def get_chat(self, chat_id: str, user_id: str) -> Optional[Dict]:
        db = self._require_db()
        return await db[CHATS_COLLECTION].find_one({"id": chat_id, "userId": user_id}, _CHAT_FIELDS)

    async def rename_chat(self, chat_id: str, name: str) -> Optional[Dict]:
        db = self._require_db()
        await db[CHATS_COLLECTION].update_one(
            {"id": chat_id}, {"$set": {"name": name, "updatedAt": _now()}}
        )
        return await db[CHATS_COLLECTION].find_one({"id": chat_id}, _CHAT_FIELDS)

    async def touch_chat(self, chat_id: str) -> None:
        db = self._require_db()
        await db[CHATS_COLLECTION].update_one({"id": chat_id}, {"$set": {"updatedAt": _now()}})

    async def delete_chat(self, chat_id: str) -> None:
        db = self._require_db()
        await db[MESSAGES_COLLECTION].delete_many({"chatId": chat_id})
        await db[CHATS_COLLECTION].delete_one({"id": chat_id})

    async def delete_user_chats(self, user_id: str) -> int:
        db = self._require_db()
        chat_ids = [c["id"] for c in await self.list_chats(user_id)]
        if chat_ids:
            await db[MESSAGES_COLLECTION].delete_many({"chatId": {"$in": chat_ids}})
        result = await db[CHATS_COLLECTION].delete_many({"userId": user_id})
        return result.deleted_count

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def list_messages(self, chat_id: str) -> List[Dict]:
        db = self._require_db()
        cursor = db[MESSAGES_COLLECTION].find({"chatId": chat_id}, _MESSAGE_FIELDS).sort("createdAt", ASCENDING)
        return await cursor.to_list(length=None)

    async def recent_messages(self, chat_id: str, limit: int) -> List[Dict]:
        """Last `limit` messages of a chat in chronological order."""
        db = self._require_db()
        cursor = (
            db[MESSAGES_COLLECTION]
            .find({"chatId": chat_id}, _MESSAGE_FIELDS)
            .sort("createdAt", DESCENDING)
            .limit(limit)
        )
        rows = await cursor.to_list(length=limit)
        rows.reverse()
        return rows

    async def add_message(self, chat_id: str, content: str, role: str) -> Dict:
        db = self._require_db()
        now = _now()
        message = {
            "id": _new_id(),
            "chatId": chat_id,
            "content": content,
            "role": role,
            "createdAt": now,
            "updatedAt": now,
        }
        await db[MESSAGES_COLLECTION].insert_one(dict(message))
        return message

    async def get_message(self, chat_id: str, message_id: str) -> Optional[Dict]:
        db = self._require_db()
        return await db[MESSAGES_COLLECTION].find_one({"id": message_id, "chatId": chat_id}, _MESSAGE_FIELDS)

    async def update_message_content(self, message_id: str, content: str) -> Optional[Dict]:
        db = self._require_db()
        await db[MESSAGES_COLLECTION].update_one(
            {"id": message_id}, {"$set": {"content": content, "updatedAt": _now()}}
        )
        return await db[MESSAGES_COLLECTION].find_one({"id": message_id}, _MESSAGE_FIELDS)

    async def delete_message(self, message_id: str) -> None:
        db = self._require_db()
        await db[MESSAGES_COLLECTION].delete_one({"id": message_id})

    async def count_user_messages(self, chat_id: str) -> int:
        db = self._require_db()
        return await db[MESSAGES_COLLECTION].count_documents({"chatId": chat_id, "role": ROLE_USER})

    async def search_messages(self, user_id: str, term: str, limit: int) -> List[Dict]:
        """Case-insensitive literal search across all chats of a user, newest first."""
        db = self._require_db()
        chats = await self.list_chats(user_id)
        chat_names = {c["id"]: c.get("name") for c in chats}
        if not chat_names:
            return []

        cursor = (
            db[MESSAGES_COLLECTION]
            .find(
                {
                    "chatId": {"$in": list(chat_names)},
                    "content": {"$regex": re.escape(term), "$options": "i"},
                },
                _MESSAGE_FIELDS,
            )
            .sort("createdAt", DESCENDING)
            .limit(limit)
        )
        rows = await cursor.to_list(length=limit)
        for row in rows:
            row["chatName"] = chat_names.get(row["chatId"])
        return rows


# Singleton
db_engine_async = AsyncDatabaseEngine()
