from fastapi import APIRouter, Depends

from vu_assistant.api.dependencies import get_current_user, get_db
from vu_assistant.config import Config
from vu_assistant.engines.db_engine_async import AsyncDatabaseEngine
from vu_assistant.engines.response_formatter import highlight_term
from vu_assistant.utils.logging_utils import get_logger
from vu_assistant.utils.response_utils import error_response, success_response, validation_error_response

logger = get_logger()
router = APIRouter()


@router.get("/messages")
async def search_messages(
    q: str = "",
    current_user: dict = Depends(get_current_user),
    db: AsyncDatabaseEngine = Depends(get_db),
):
    term = q.strip()
    if len(term) < Config.SEARCH_MIN_LENGTH:
        return validation_error_response(
            f"Search query must be at least {Config.SEARCH_MIN_LENGTH} characters long"
        )

    try:
        rows = await db.search_messages(current_user["userId"], term, Config.SEARCH_RESULT_LIMIT)
        results = [dict(row, highlightedContent=highlight_term(row["content"], term)) for row in rows]
        return success_response(
            f"Found {len(results)} message(s)",
            {"query": term, "results": results, "total": len(results)},
        )
    except Exception:
        logger.exception("Search messages error")
        return error_response("Failed to search messages", 500)
