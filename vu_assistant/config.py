import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


class Config:
    # Security
    # Keep backward compatibility with older SECRET_KEY naming.
    JWT_SECRET = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY")
    if not JWT_SECRET:
        raise ValueError("No JWT_SECRET set. Please set JWT_SECRET in .env file for JWT security.")

    APP_ENV = os.getenv("APP_ENV", "development").strip().lower()
    APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
    IS_PRODUCTION = APP_ENV == "production"

    # Session cookie
    AUTH_COOKIE_NAME = "auth-token"
    SESSION_DAYS = _env_int("SESSION_DAYS", 7)

    # Database
    MONGO_URI = os.getenv("MONGO_URI")
    MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "vu_assistant")

    # AI Environment
    # Keep backward compatibility with older GOOGLE_API_KEY naming.
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemma-3-27b-it")

    AI_MAX_RETRIES = max(1, _env_int("AI_MAX_RETRIES", 2))
    AI_BASE_DELAY = _env_float("AI_BASE_DELAY", 0.5)
    AI_CIRCUIT_FAILURE_THRESHOLD = _env_int("AI_CIRCUIT_FAILURE_THRESHOLD", 8)
    AI_CIRCUIT_RECOVERY_TIMEOUT = _env_int("AI_CIRCUIT_RECOVERY_TIMEOUT", 8)
    AI_RATE_LIMIT_RPM = _env_int("AI_RATE_LIMIT_RPM", 120)
    AI_HISTORY_TURNS = _env_int("AI_HISTORY_TURNS", 6)

    # Email
    EMAIL_ENVIRONMENT = os.getenv("EMAIL_ENVIRONMENT", "development").strip().lower()
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    EMAIL_FROM = os.getenv("EMAIL_FROM", "VU Assistant <noreply@localhost>")

    # Knowledge base
    KNOWLEDGE_BASE_PATH = os.getenv(
        "KNOWLEDGE_BASE_PATH",
        os.path.join(os.path.dirname(__file__), "data", "vu_knowledge_base.json"),
    )
    KNOWLEDGE_MATCH_LIMIT = 5

    # Constants & Keywords
    VALID_THEMES = ["blue", "green", "purple", "red", "orange", "indigo"]
    DEFAULT_THEME = "blue"
    DELETE_ACCOUNT_CONFIRMATION = "DELETE MY ACCOUNT"

    VERIFICATION_TOKEN_HOURS = 24
    PASSWORD_RESET_TOKEN_HOURS = 1

    CHAT_HISTORY_LIMIT = 10
    SEARCH_RESULT_LIMIT = 50
    SEARCH_MIN_LENGTH = 2

    DEFAULT_CHAT_NAME = "New Chat"
