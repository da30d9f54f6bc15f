import datetime
import re
import secrets
from typing import Any, Dict, Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from vu_assistant.config import Config

SECRET_KEY = Config.JWT_SECRET
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = Config.SESSION_DAYS

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# At least 8 characters, 1 uppercase, 1 lowercase, 1 number
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d@$!%*?&]{8,}$")


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return generate_password_hash(str(password or ""))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify plain input against a stored werkzeug hash."""
    plain = str(plain_password or "")
    stored = str(hashed_password or "")
    if not plain or not stored:
        return False
    try:
        return check_password_hash(stored, plain)
    except ValueError:
        # Unknown hash method in the stored value
        return False


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[datetime.timedelta] = None
) -> str:
    """Create a new JWT access token."""
    to_encode = data.copy()
    expire = datetime.datetime.now(datetime.timezone.utc) + (
        expires_delta or datetime.timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def generate_verification_token() -> str:
    return secrets.token_hex(32)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(str(email or "")))


def is_valid_password(password: str) -> bool:
    return bool(_PASSWORD_RE.match(str(password or "")))
