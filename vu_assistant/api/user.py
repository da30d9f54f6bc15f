from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends

from vu_assistant.api.auth import public_user
from vu_assistant.api.dependencies import get_current_user, get_db, get_mailer
from vu_assistant.config import Config
from vu_assistant.core.session import clear_session_cookie
from vu_assistant.engines.db_engine_async import TOKEN_EMAIL_CHANGE, AsyncDatabaseEngine
from vu_assistant.engines.mail_engine import MailEngine, email_change_template
from vu_assistant.schemas import DeleteAccountRequest, ProfileUpdateRequest
from vu_assistant.utils.auth_utils import (
    generate_verification_token,
    hash_password,
    is_valid_email,
    is_valid_password,
    verify_password,
)
from vu_assistant.utils.logging_utils import get_logger, log_audit
from vu_assistant.utils.response_utils import (
    error_response,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = get_logger()
router = APIRouter()


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
    mailer: MailEngine = Depends(get_mailer),
):
    try:
        user = await db.get_user_by_id(current_user["userId"])
        if not user:
            return not_found_response("User not found")

        updates = {}
        email_change_requested = False
        messages = []

        if body.display_name is not None:
            display_name = body.display_name.strip()
            if len(display_name) < 2:
                return validation_error_response("Display name must be at least 2 characters long")
            updates["displayName"] = display_name

        if body.theme is not None:
            if body.theme not in Config.VALID_THEMES:
                return validation_error_response("Invalid theme selected")
            updates["theme"] = body.theme

        new_email = (body.email or "").strip().lower()
        if new_email and new_email != user["email"].lower():
            if not is_valid_email(new_email):
                return validation_error_response("Please enter a valid email address")
            if not body.email_change_password:
                return validation_error_response("Password is required to change email address")
            if not verify_password(body.email_change_password, user.get("password")):
                return error_response("Password is incorrect", 400)
            if await db.find_user_by_email(new_email):
                return error_response("An account with this email already exists", 400)
            email_change_requested = True

        if body.new_password:
            if not body.current_password:
                return validation_error_response("Current password is required to set a new password")
            if not verify_password(body.current_password, user.get("password")):
                return error_response("Current password is incorrect", 400)
            if not is_valid_password(body.new_password):
                return validation_error_response(
                    "New password must be at least 8 characters with uppercase, lowercase, and number"
                )
            updates["password"] = hash_password(body.new_password)
            messages.append("Password updated")

        if updates:
            user = await db.update_user(user["id"], updates)
            if "displayName" in updates or "theme" in updates:
                messages.insert(0, "Profile updated")

        data = {"user": public_user(user)}

        if email_change_requested:
            token = generate_verification_token()
            await db.delete_tokens_for_email(new_email, TOKEN_EMAIL_CHANGE)
            await db.create_verification_token(
                email=new_email,
                token=token,
                token_type=TOKEN_EMAIL_CHANGE,
                expires_at=datetime.now(timezone.utc) + timedelta(hours=Config.VERIFICATION_TOKEN_HOURS),
                user_id=user["id"],
            )
            verification_url = f"{Config.APP_URL}/auth/verify-email-change?token={token}"
            email_result = await mailer.send(
                to=new_email,
                subject="Verify your new email address - VU Assistant",
                html=email_change_template(
                    verification_url,
                    user.get("displayName") or user.get("fullName") or "",
                    user["email"],
                    new_email,
                ),
            )
            log_audit("email_change_requested", user["email"], f"new={new_email}")
            messages.append(f"Verification email sent to {new_email}")
            data["emailChangePending"] = True
            data["emailSent"] = bool(email_result.get("success"))
            if not mailer.is_production:
                data["verificationUrl"] = verification_url

        message = ". ".join(messages) if messages else "No changes made"
        return success_response(message, data)
    except Exception:
        logger.exception("Update profile error")
        return error_response("Failed to update profile", 500)


@router.delete("/delete-chats")
async def delete_all_chats(current_user: dict = Depends(get_current_user), db: AsyncDatabaseEngine = Depends(get_db)):
    try:
        deleted = await db.delete_user_chats(current_user["userId"])
        log_audit("delete_chats", current_user.get("email", ""), f"count={deleted}")
        return success_response(f"Deleted {deleted} chat(s)", {"deletedCount": deleted})
    except Exception:
        logger.exception("Delete chats error")
        return error_response("Failed to delete chats", 500)


@router.delete("/delete-account")
async def delete_account(
    body: DeleteAccountRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    if body.confirmation_text != Config.DELETE_ACCOUNT_CONFIRMATION:
        return validation_error_response(
            f'Please type "{Config.DELETE_ACCOUNT_CONFIRMATION}" to confirm account deletion'
        )

    try:
        user = await db.get_user_by_id(current_user["userId"])
        if not user:
            return not_found_response("User not found")

        await db.delete_user_chats(user["id"])
        await db.delete_user_sessions(user["id"])
        await db.delete_tokens_for_email(user["email"])
        await db.delete_user(user["id"])
        log_audit("delete_account", user["email"])

        response = success_response("Account deleted successfully")
        clear_session_cookie(response)
        return response
    except Exception:
        logger.exception("Delete account error")
        return error_response("Failed to delete account", 500)
