from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request

from vu_assistant.api.dependencies import get_current_user, get_db, get_mailer
from vu_assistant.config import Config
from vu_assistant.core.session import (
    clear_session_cookie,
    get_session_token,
    session_expiry,
    set_session_cookie,
)
from vu_assistant.engines.db_engine_async import (
    TOKEN_EMAIL_CHANGE,
    TOKEN_EMAIL_VERIFICATION,
    TOKEN_PASSWORD_RESET,
    AsyncDatabaseEngine,
)
from vu_assistant.engines.mail_engine import (
    MailEngine,
    password_reset_template,
    registration_verification_template,
)
from vu_assistant.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from vu_assistant.utils.auth_utils import (
    create_access_token,
    generate_verification_token,
    hash_password,
    is_valid_email,
    is_valid_password,
    verify_password,
)
from vu_assistant.utils.logging_utils import get_logger, log_audit
from vu_assistant.utils.response_utils import (
    error_response,
    success_response,
    unauthorized_response,
    validation_error_response,
)

logger = get_logger()
router = APIRouter()

PASSWORD_POLICY_MESSAGE = "Password must be at least 8 characters with uppercase, lowercase, and number"


def _is_expired(expires_at) -> bool:
    if expires_at is None:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc) > expires_at


def public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "email": user["email"],
        "fullName": user.get("fullName"),
        "displayName": user.get("displayName") or user.get("fullName"),
        "verified": bool(user.get("verified")),
        "theme": user.get("theme") or Config.DEFAULT_THEME,
    }


@router.post("/register")
async def register(
    body: RegisterRequest,
    db: AsyncDatabaseEngine = Depends(get_db),
    mailer: MailEngine = Depends(get_mailer),
):
    email = body.email.strip()
    full_name = body.full_name.strip()

    if not email or not full_name or not body.password or not body.confirm_password:
        return validation_error_response("All fields are required")
    if not is_valid_email(email):
        return validation_error_response("Please enter a valid email address")
    if not is_valid_password(body.password):
        return validation_error_response(PASSWORD_POLICY_MESSAGE)
    if body.password != body.confirm_password:
        return validation_error_response("Passwords do not match")
    if len(full_name) < 2:
        return validation_error_response("Full name must be at least 2 characters long")

    try:
        if await db.find_user_by_email(email):
            return error_response("An account with this email already exists")

        user = await db.create_user(
            email=email.lower(),
            full_name=full_name,
            password_hash=hash_password(body.password),
            verified=False,
        )

        verification_token = generate_verification_token()
        await db.create_verification_token(
            email=user["email"],
            token=verification_token,
            token_type=TOKEN_EMAIL_VERIFICATION,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=Config.VERIFICATION_TOKEN_HOURS),
            user_id=user["id"],
        )

        verification_url = f"{Config.APP_URL}/auth/verify?token={verification_token}"
        email_result = await mailer.send(
            to=user["email"],
            subject="Welcome to VU Assistant - Verify your email",
            html=registration_verification_template(verification_url, user["fullName"]),
        )
        log_audit("register", user["email"], f"email_sent={email_result.get('success')}")

        data = {
            "userId": user["id"],
            "email": user["email"],
            "requiresVerification": True,
            "emailSent": bool(email_result.get("success")),
        }
        # Only include verification URL outside production
        if not mailer.is_production:
            data["verificationUrl"] = verification_url

        return success_response(
            "Registration successful! Please check your email to verify your account.",
            data,
        )
    except Exception:
        logger.exception("Registration error")
        return error_response("An error occurred during registration. Please try again.", 500)


@router.get("/verify")
async def verify_email(token: str = "", db: AsyncDatabaseEngine = Depends(get_db)):
    if not token:
        return error_response("Verification token is required", 400)

    try:
        record = await db.find_verification_token(token, TOKEN_EMAIL_VERIFICATION)
        if not record:
            return error_response("Invalid or expired verification token", 400)
        if _is_expired(record.get("expiresAt")):
            return error_response("Verification token has expired", 400)

        user = await db.find_user_by_email(record["email"])
        if not user:
            return error_response("User not found", 404)

        if user.get("verified"):
            return success_response(
                "Email already verified",
                {"email": user["email"], "alreadyVerified": True},
            )

        await db.update_user(user["id"], {"verified": True})
        await db.delete_verification_token(token)
        log_audit("verify_email", user["email"])

        return success_response(
            "Email verified successfully! You can now log in.",
            {"email": user["email"], "verified": True},
        )
    except Exception:
        logger.exception("Email verification error")
        return error_response("An error occurred during verification. Please try again.", 500)


@router.post("/login")
async def login(body: LoginRequest, db: AsyncDatabaseEngine = Depends(get_db)):
    email = body.email.strip()
    if not email or not body.password:
        return validation_error_response("Email and password are required")
    if not is_valid_email(email):
        return validation_error_response("Please enter a valid email address")

    try:
        user = await db.find_user_by_email(email)
        if not user:
            return unauthorized_response("Invalid email or password")

        if not user.get("verified"):
            return unauthorized_response("Please verify your email address before logging in")

        if not verify_password(body.password, user.get("password")):
            return unauthorized_response("Invalid email or password")

        token = create_access_token(
            data={"userId": user["id"], "email": user["email"], "fullName": user.get("fullName")},
            expires_delta=timedelta(days=Config.SESSION_DAYS),
        )
        await db.create_session(user["id"], token, session_expiry())
        log_audit("login", user["email"])

        response = success_response("Login successful", {"user": public_user(user)})
        set_session_cookie(response, token)
        return response
    except Exception:
        logger.exception("Login error")
        return error_response("An error occurred during login. Please try again.", 500)


@router.post("/logout")
async def logout(request: Request, db: AsyncDatabaseEngine = Depends(get_db)):
    token = get_session_token(request)
    if token:
        try:
            removed = await db.delete_session(token)
            log_audit("logout", "session", f"sessions_removed={removed}")
        except Exception:
            # Logging out must still clear the cookie
            logger.exception("Logout session cleanup error")

    response = success_response("Logged out successfully")
    clear_session_cookie(response)
    return response


@router.get("/me")
async def me(current_user: dict = Depends(get_current_user), db: AsyncDatabaseEngine = Depends(get_db)):
    try:
        user = await db.get_user_by_id(current_user["userId"])
        if not user:
            return error_response("User not found", 404)
        return success_response("User data retrieved successfully", {"user": public_user(user)})
    except Exception:
        logger.exception("Get user error")
        return error_response("An error occurred while fetching user data", 500)


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncDatabaseEngine = Depends(get_db),
    mailer: MailEngine = Depends(get_mailer),
):
    email = body.email.strip()
    if not email:
        return validation_error_response("Email address is required")
    if not is_valid_email(email):
        return validation_error_response("Please enter a valid email address")

    try:
        user = await db.find_user_by_email(email)
        if not user:
            # Do not reveal whether the email exists
            return success_response(
                "If an account with that email exists, we've sent a password reset link."
            )

        if not user.get("verified"):
            return error_response(
                "Please verify your email address first. Check your inbox for the verification email.",
                400,
            )

        reset_token = generate_verification_token()
        await db.delete_tokens_for_email(user["email"], TOKEN_PASSWORD_RESET)
        await db.create_verification_token(
            email=user["email"],
            token=reset_token,
            token_type=TOKEN_PASSWORD_RESET,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=Config.PASSWORD_RESET_TOKEN_HOURS),
            user_id=user["id"],
        )

        reset_url = f"{Config.APP_URL}/auth/reset-password?token={reset_token}"
        await mailer.send(
            to=user["email"],
            subject="Reset your password - VU Assistant",
            html=password_reset_template(reset_url, user.get("fullName") or ""),
        )
        log_audit("forgot_password", user["email"])

        return success_response(
            "If an account with that email exists, we've sent a password reset link. Please check your email."
        )
    except Exception:
        logger.exception("Forgot password error")
        return error_response(
            "An error occurred while processing your request. Please try again.", 500
        )


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, db: AsyncDatabaseEngine = Depends(get_db)):
    if not body.token:
        return validation_error_response("Reset token is required")
    if not body.password or not body.confirm_password:
        return validation_error_response("Password and confirmation are required")
    if not is_valid_password(body.password):
        return validation_error_response(PASSWORD_POLICY_MESSAGE)
    if body.password != body.confirm_password:
        return validation_error_response("Passwords do not match")

    try:
        record = await db.find_verification_token(body.token, TOKEN_PASSWORD_RESET)
        if not record:
            return error_response("Invalid or expired reset token", 400)
        if _is_expired(record.get("expiresAt")):
            return error_response("Reset token has expired. Please request a new one.", 400)

        user = await db.get_user_by_id(record.get("userId") or "")
        if not user:
            return error_response("User not found", 404)

        await db.update_user(user["id"], {"password": hash_password(body.password)})
        await db.delete_verification_token(body.token)
        await db.delete_tokens_for_email(user["email"], TOKEN_PASSWORD_RESET)
        log_audit("reset_password", user["email"])

        return success_response(
            "Password reset successful! You can now log in with your new password.",
            {"email": user["email"]},
        )
    except Exception:
        logger.exception("Reset password error")
        return error_response(
            "An error occurred while resetting your password. Please try again.", 500
        )


@router.get("/verify-email-change")
async def verify_email_change(token: str = "", db: AsyncDatabaseEngine = Depends(get_db)):
    if not token:
        return error_response("Verification token is required", 400)

    try:
        record = await db.find_verification_token(token, TOKEN_EMAIL_CHANGE)
        if not record:
            return error_response("Invalid or expired verification token", 400)
        if _is_expired(record.get("expiresAt")):
            return error_response(
                "Verification token has expired. Please request a new email change.", 400
            )
        if not record.get("userId"):
            return error_response("Invalid token format", 400)

        user = await db.get_user_by_id(record["userId"])
        if not user:
            return error_response("User not found", 404)

        old_email = user["email"]
        new_email = record["email"]
        await db.update_user(user["id"], {"email": new_email})
        await db.delete_verification_token(token)
        log_audit("email_change", old_email, f"new={new_email}")

        return success_response(
            "Email address changed successfully! You can now log in with your new email address.",
            {"newEmail": new_email, "oldEmail": old_email, "verified": True},
        )
    except Exception:
        logger.exception("Email change verification error")
        return error_response(
            "An error occurred during verification. Please try again or contact support.", 500
        )
