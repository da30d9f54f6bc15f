from fastapi import HTTPException, Request, status

from vu_assistant.core.session import get_session_token
from vu_assistant.engines.chat_engine import ChatResponder, get_default_responder
from vu_assistant.engines.db_engine_async import AsyncDatabaseEngine, db_engine_async
from vu_assistant.engines.mail_engine import MailEngine, mail_engine
from vu_assistant.utils.auth_utils import decode_access_token


async def get_db() -> AsyncDatabaseEngine:
    return db_engine_async


async def get_mailer() -> MailEngine:
    return mail_engine


async def get_responder() -> ChatResponder:
    return get_default_responder()


async def get_current_user(request: Request) -> dict:
    token = get_session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token found",
        )

    payload = decode_access_token(token)
    if not payload or not payload.get("userId"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return payload

