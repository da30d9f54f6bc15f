from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response

from vu_assistant.config import Config

SESSION_MAX_AGE = Config.SESSION_DAYS * 24 * 60 * 60


def session_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=Config.SESSION_DAYS)


def get_session_token(request: Request) -> Optional[str]:
    """Auth token from the session cookie, or a bearer header as fallback."""
    token = request.cookies.get(Config.AUTH_COOKIE_NAME)
    if token:
        return token
    auth_header = str(request.headers.get("Authorization") or "").strip()
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=Config.AUTH_COOKIE_NAME,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=Config.IS_PRODUCTION,
        samesite="strict",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=Config.AUTH_COOKIE_NAME,
        httponly=True,
        secure=Config.IS_PRODUCTION,
        samesite="strict",
        path="/",
    )
