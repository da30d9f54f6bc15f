from fastapi import APIRouter, Depends

from vu_assistant.api.dependencies import get_current_user, get_db, get_responder
from vu_assistant.config import Config
from vu_assistant.engines.chat_engine import (
    SOURCE_FALLBACK,
    ChatResponder,
    generate_chat_title,
    keyword_fallback_reply,
    welcome_message,
)
from vu_assistant.engines.db_engine_async import ROLE_ASSISTANT, ROLE_USER, AsyncDatabaseEngine
from vu_assistant.schemas import (
    CreateChatRequest,
    EditMessageRequest,
    RenameChatRequest,
    SendMessageRequest,
)
from vu_assistant.utils.logging_utils import get_logger
from vu_assistant.utils.response_utils import (
    error_response,
    not_found_response,
    success_response,
    validation_error_response,
)

logger = get_logger()
router = APIRouter()

CHAT_NAME_MAX_LENGTH = 100


@router.get("/")
async def list_chats(current_user: dict = Depends(get_current_user), db: AsyncDatabaseEngine = Depends(get_db)):
    try:
        chats = await db.list_chats(current_user["userId"])
        return success_response("Chats retrieved successfully", {"chats": chats})
    except Exception:
        logger.exception("Get chats error")
        return error_response("Failed to fetch chats", 500)


@router.post("/")
async def create_chat(
    body: CreateChatRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    try:
        chat = await db.create_chat(current_user["userId"], Config.DEFAULT_CHAT_NAME)

        initial_message = (body.initial_message or "").strip()
        if not initial_message:
            # Greet the user in an empty chat
            await db.add_message(chat["id"], welcome_message(), ROLE_ASSISTANT)

        return success_response("Chat created successfully", {"chat": chat})
    except Exception:
        logger.exception("Create chat error")
        return error_response("Failed to create chat", 500)


@router.get("/{chat_id}")
async def get_chat(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    try:
        chat = await db.get_chat(chat_id, current_user["userId"])
        if not chat:
            return not_found_response("Chat not found")

        chat["messages"] = await db.list_messages(chat_id)
        return success_response("Chat retrieved successfully", {"chat": chat})
    except Exception:
        logger.exception("Get chat error")
        return error_response("Failed to fetch chat", 500)


@router.put("/{chat_id}")
async def rename_chat(
    chat_id: str,
    body: RenameChatRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    name = body.name.strip()
    if not name:
        return validation_error_response("Chat name is required")
    if len(name) > CHAT_NAME_MAX_LENGTH:
        return validation_error_response(f"Chat name must be {CHAT_NAME_MAX_LENGTH} characters or fewer")

    try:
        if not await db.get_chat(chat_id, current_user["userId"]):
            return not_found_response("Chat not found")

        chat = await db.rename_chat(chat_id, name)
        return success_response("Chat renamed successfully", {"chat": chat})
    except Exception:
        logger.exception("Rename chat error")
        return error_response("Failed to rename chat", 500)


@router.delete("/{chat_id}")
async def delete_chat(
    chat_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    try:
        if not await db.get_chat(chat_id, current_user["userId"]):
            return not_found_response("Chat not found")

        await db.delete_chat(chat_id)
        return success_response("Chat deleted successfully")
    except Exception:
        logger.exception("Delete chat error")
        return error_response("Failed to delete chat", 500)


@router.post("/{chat_id}/messages")
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
    responder: ChatResponder = Depends(get_responder),
):
    message = body.message.strip()
    if not message:
        return validation_error_response("Message is required")

    try:
        chat = await db.get_chat(chat_id, current_user["userId"])
        if not chat:
            return not_found_response("Chat not found")

        history = await db.recent_messages(chat_id, Config.CHAT_HISTORY_LIMIT)
        user_message = await db.add_message(chat_id, message, ROLE_USER)

        try:
            reply = await responder.generate_reply(message, history)
            content, source = reply.content, reply.source
        except Exception:
            logger.exception("Reply pipeline failed; using keyword fallback")
            content, source = keyword_fallback_reply(message), SOURCE_FALLBACK

        ai_message = await db.add_message(chat_id, content, ROLE_ASSISTANT)
        await db.touch_chat(chat_id)

        if await db.count_user_messages(chat_id) == 1:
            await db.rename_chat(chat_id, generate_chat_title(message))

        logger.info(f"[Chat] Reply for chat {chat_id} from {source}")
        return success_response(
            "Message sent successfully",
            {"userMessage": user_message, "aiMessage": ai_message, "source": source},
        )
    except Exception:
        logger.exception("Send message error")
        return error_response("Failed to send message", 500)


@router.put("/{chat_id}/messages/{message_id}")
async def edit_message(
    chat_id: str,
    message_id: str,
    body: EditMessageRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
    responder: ChatResponder = Depends(get_responder),
):
    content = body.content.strip()
    if not content:
        return validation_error_response("Message content is required")

    try:
        if not await db.get_chat(chat_id, current_user["userId"]):
            return not_found_response("Chat not found")

        message = await db.get_message(chat_id, message_id)
        if not message:
            return not_found_response("Message not found")
        if message.get("role") != ROLE_USER:
            return error_response("Only user messages can be edited", 400)

        updated_message = await db.update_message_content(message_id, content)
        data = {"updatedMessage": updated_message}

        if body.regenerate:
            messages = await db.list_messages(chat_id)
            index = next(i for i, m in enumerate(messages) if m["id"] == message_id)
            following = messages[index + 1] if index + 1 < len(messages) else None
            stale_reply = following if following and following.get("role") == ROLE_ASSISTANT else None

            history = messages[max(0, index - Config.CHAT_HISTORY_LIMIT):index]
            if stale_reply:
                history.append(stale_reply)

            try:
                reply = await responder.regenerate_reply(content, history)
                reply_content, source = reply.content, reply.source
            except Exception:
                logger.exception("Regeneration failed; using keyword fallback")
                reply_content, source = keyword_fallback_reply(content), SOURCE_FALLBACK

            if stale_reply:
                ai_message = await db.update_message_content(stale_reply["id"], reply_content)
            else:
                ai_message = await db.add_message(chat_id, reply_content, ROLE_ASSISTANT)

            data["aiMessage"] = ai_message
            data["source"] = source

        await db.touch_chat(chat_id)
        return success_response("Message updated successfully", data)
    except Exception:
        logger.exception("Edit message error")
        return error_response("Failed to update message", 500)


@router.delete("/{chat_id}/messages/{message_id}")
async def delete_message(
    chat_id: str,
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    try:
        if not await db.get_chat(chat_id, current_user["userId"]):
            return not_found_response("Chat not found")

        message = await db.get_message(chat_id, message_id)
        if not message:
            return not_found_response("Message not found")
        if message.get("role") != ROLE_USER:
            return error_response("Only user messages can be deleted", 400)

        await db.delete_message(message_id)
        await db.touch_chat(chat_id)
        return success_response("Message deleted successfully")
    except Exception:
        logger.exception("Delete message error")
        return error_response("Failed to delete message", 500)
